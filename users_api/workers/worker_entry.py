# users_api/workers/worker_entry.py
"""
RQ Worker 启动入口（消费确认邮件等作业）：
- 默认常驻；传 --burst 则队列空了就退出。
- 显式 Redis 连接。
日志：worker_env_loaded / worker_start / worker_stop
"""
import argparse
import os

from redis import from_url as redis_from_url
from rq import Queue, Worker

from users_api.config import load_env
from users_api.infra.logger import configure_logging, emit


def main(argv=None):
    load_env()
    parser = argparse.ArgumentParser()
    parser.add_argument("--burst", action="store_true", help="队列空时自动退出")
    parser.add_argument("--queue", default=os.getenv("RQ_QUEUE", "default"))
    parser.add_argument("--redis", default=os.getenv("REDIS_URL", "redis://localhost:6379/0"))
    args = parser.parse_args(argv)

    configure_logging()
    emit("worker_env_loaded", REDIS_URL=args.redis, RQ_QUEUE=args.queue)
    emit("worker_start", redis=args.redis, queue=args.queue)

    conn = redis_from_url(args.redis)
    worker = Worker([Queue(args.queue, connection=conn)], connection=conn)
    try:
        worker.work(burst=args.burst)
    except KeyboardInterrupt:
        emit("worker_stop", reason="KeyboardInterrupt")
    finally:
        emit("worker_stop", reason="exit")


if __name__ == "__main__":
    main()

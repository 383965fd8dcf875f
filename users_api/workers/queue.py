"""
模块职能：
- 生产者：把“发送确认邮件”作业放进 RQ 队列（Redis）。

函数：
- enqueue_confirmation_email(user_id, email, username, confirm_url)

日志：
- q_enqueue
"""
import os

from users_api.infra.logger import emit

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
RQ_QUEUE = os.getenv("RQ_QUEUE", "default")

_queue = None


def _get_queue():
    global _queue
    if _queue is None:
        from redis import from_url as redis_from_url
        from rq import Queue
        _queue = Queue(RQ_QUEUE, connection=redis_from_url(REDIS_URL))
    return _queue


def enqueue_confirmation_email(user_id: str, email: str, username: str, confirm_url: str) -> str:
    from users_api.workers.mailer import send_confirmation_email  # 延迟导入避免循环
    rq_job = _get_queue().enqueue(
        send_confirmation_email,
        kwargs=dict(user_id=user_id, email=email, username=username, confirm_url=confirm_url),
    )
    emit("q_enqueue", rq_job_id=rq_job.id, job="send_confirmation_email", user_id=user_id)
    return rq_job.id

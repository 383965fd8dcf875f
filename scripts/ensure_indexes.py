""""轻量迁移：为 users 集合创建唯一索引（username/email）与全文索引（username/email/status）。

create_index 幂等，可重复执行；
可作为脚本执行，也可被测试直接导入调用（提供 run() 函数）"""
# scripts/ensure_indexes.py

import os
import sys

# 确保脚本在控制台有输出；不影响主服务的日志设置
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("PYTHONUNBUFFERED", "1")

from users_api.infra.db import MONGO_DB, MONGO_URL, get_database  # noqa: E402
from users_api.infra.logger import emit  # noqa: E402
from users_api.resource.repository import USERS_COLLECTION, UserRepository  # noqa: E402


def run(database=None):
    database = database if database is not None else get_database()
    emit("migrate_users_begin", mongo_db=database.name)
    print("[ensure_indexes] creating indexes if not exists ...", flush=True)
    UserRepository(database).ensure_indexes()
    names = sorted(database.collection(USERS_COLLECTION).index_information())
    emit("migrate_users_done", status="ok", indexes=names)
    print(f"[ensure_indexes] done: {names}", flush=True)
    return names


if __name__ == "__main__":
    print(f"[ensure_indexes] MONGO_URL={MONGO_URL} MONGO_DB={MONGO_DB}", flush=True)
    try:
        run()
        sys.exit(0)
    except Exception as e:
        emit("migrate_users_error", error=str(e))
        print(f"[ensure_indexes] ERROR: {e}", file=sys.stderr, flush=True)
        sys.exit(1)

"""根据 .env 或默认值创建/更新一名 active 的管理员（口令 bcrypt 哈希，角色 admin + user）。

普通用户走 POST /api/users 自助注册 + 邮件确认，管理员无法这样产生，所以由本脚本播种；
可作为脚本执行，也可被测试直接导入调用（提供 run() 函数）"""
# scripts/seed_admin.py

import os
import sys

# 确保脚本在控制台有输出；不影响主服务的日志设置
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("PYTHONUNBUFFERED", "1")

from users_api.core.errors import NotFoundError  # noqa: E402
from users_api.core.models_user import User, UserRole  # noqa: E402
from users_api.core.state_machine import UserStatus  # noqa: E402
from users_api.infra.db import get_database  # noqa: E402
from users_api.infra.logger import emit  # noqa: E402
from users_api.resource.repository import UserRepository  # noqa: E402

ADMIN_ROLES = [UserRole.admin.value, UserRole.user.value]


def _get_env(k: str, default: str) -> str:
    v = os.getenv(k)
    return v if v is not None and v != "" else default


def upsert_admin(repo: UserRepository, username: str, email: str, password: str) -> User:
    try:
        existing = repo.get_user_by_username(username)
    except NotFoundError:
        existing = None

    if existing:
        action = "updated"
        user = repo.update_user(existing.id, User(
            email=email, status=UserStatus.ACTIVE.value, roles=ADMIN_ROLES,
        ))
        if password:
            holder = User()
            holder.set_password(password)
            user = repo.update_password(existing.id, holder.password)
    else:
        action = "created"
        user = User(username=username, email=email, roles=ADMIN_ROLES, status=UserStatus.ACTIVE.value)
        user.set_password(password)
        user = repo.create_user(user)

    emit("seed_user_upsert", username=username, roles=ADMIN_ROLES, action=action)
    print(f"[seed_admin] {action} user: {username} ({','.join(ADMIN_ROLES)})", flush=True)
    return user


def run(database=None) -> User:
    database = database if database is not None else get_database()
    emit("seed_begin", mongo_db=database.name)
    print("[seed_admin] seeding admin ...", flush=True)

    user = upsert_admin(
        UserRepository(database),
        _get_env("ADMIN_USERNAME", "admin"),
        _get_env("ADMIN_EMAIL", "admin@localhost"),
        _get_env("ADMIN_PASSWORD", "admin"),
    )

    emit("seed_done", status="ok")
    print("[seed_admin] done.", flush=True)
    return user


if __name__ == "__main__":
    try:
        run()
        sys.exit(0)
    except Exception as e:
        emit("seed_error", error=str(e))
        print(f"[seed_admin] ERROR: {e}", file=sys.stderr, flush=True)
        sys.exit(1)

"""
模块职能：
- load_env()：加载 .env（先 .env.example 作默认，再用 .env 覆盖），必须在导入 logger/db 之前调用
- 读取装配 users 资源所需的环境变量（其余模块就地 os.getenv）
"""
import os
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parents[1]


def load_env(root: Path = ROOT):
    env_example = root / ".env.example"
    env_file = root / ".env"
    if env_example.exists():
        load_dotenv(env_example, override=False)
    if env_file.exists():
        load_dotenv(env_file, override=True)


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def users_base_path() -> str:
    return os.getenv("USERS_BASE_PATH", "/api/users")


def public_base_url() -> str:
    return os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")


def send_confirmation_email() -> bool:
    return _flag("SEND_CONFIRMATION_EMAIL")

# users_api/core/security.py
""""封装口令哈希/校验（passlib[bcrypt]）、确认码生成与 JWT 签发/解析。

create_access_token() 把 sub(user id)/username/roles/exp 写入 JWT 负载；
decode_access_token() 供 core.context 解析 Authorization 头。"""

import os
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt  # PyJWT
from passlib.context import CryptContext

ALGORITHM = "HS256"
CONFIRMATION_CODE_BYTES = 16
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def get_secret_key() -> str:
    key = os.getenv("SECRET_KEY")
    if not key:
        raise RuntimeError("SECRET_KEY is not set in environment")
    return key


def get_access_token_expire_minutes() -> int:
    try:
        return int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
    except ValueError:
        return 60


def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)


def verify_password(plain: str, hashed: str) -> bool:
    if not plain or not hashed:
        return False
    return pwd_context.verify(plain, hashed)


def generate_confirmation_code() -> str:
    return secrets.token_hex(CONFIRMATION_CODE_BYTES)


def codes_match(supplied: str, stored: str) -> bool:
    if not supplied or not stored:
        return False
    return secrets.compare_digest(supplied.encode("utf-8"), stored.encode("utf-8"))


def create_access_token(payload: Dict[str, Any]) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=get_access_token_expire_minutes())
    to_encode = dict(payload)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, get_secret_key(), algorithm=ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """失败时抛出 jwt.ExpiredSignatureError / jwt.PyJWTError，由调用方区分处理。"""
    return jwt.decode(token, get_secret_key(), algorithms=[ALGORITHM], options={"verify_aud": False})

# users_api/core/context.py
"""
统一解析请求的当前用户（可能为匿名）。
- 兼容头部：标准 Bearer / 裸 JWT
- 无凭据 → None（匿名，由各端点 ACL 决定是否放行）
- 凭据无效/过期/用户已不存在 → 401
- 查询用户时存储出错 → 503
- 事件打点：auth_token_invalid / auth_token_expired / auth_token_missing_sub / auth_user_not_found
"""
from __future__ import annotations

from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from users_api.core.errors import StorageError, UsersError
from users_api.core.models_user import User
from users_api.core.security import decode_access_token
from users_api.infra.logger import emit, emit_error

_bearer = HTTPBearer(auto_error=False)


def _extract_token(request: Request, creds: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if creds and creds.credentials:
        return creds.credentials
    # 兼容：Authorization: <JWT>
    auth = request.headers.get("authorization")
    if auth and auth.count(".") == 2 and " " not in auth.strip():
        return auth.strip()
    return None


def optional_user_dependency(resource):
    """为指定资源生成 FastAPI 依赖：返回当前 User 或 None。"""

    def get_optional_user(
        request: Request,
        creds: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    ) -> Optional[User]:
        token = _extract_token(request, creds)
        if token is None:
            return None
        try:
            payload = decode_access_token(token)
        except jwt.ExpiredSignatureError:
            emit("auth_token_expired")
            raise HTTPException(status_code=401, detail="Token expired")
        except jwt.PyJWTError as e:
            emit("auth_token_invalid", error=str(e))
            raise HTTPException(status_code=401, detail="Invalid token")

        uid = payload.get("sub")
        if not uid:
            emit("auth_token_missing_sub")
            raise HTTPException(status_code=401, detail="Invalid token")
        try:
            return resource.user_repository().get_user_by_id(str(uid))
        except StorageError as e:
            emit_error("auth_user_lookup_failed", user_id=uid, error=e.message)
            raise HTTPException(status_code=503, detail=e.message)
        except UsersError:
            emit("auth_user_not_found", user_id=uid)
            raise HTTPException(status_code=401, detail="Invalid token")

    return get_optional_user


def required_user_dependency(resource):
    get_optional_user = optional_user_dependency(resource)

    def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
        if user is None:
            raise HTTPException(status_code=401, detail="Not authenticated")
        return user

    return get_current_user

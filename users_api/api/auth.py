# users_api/api/auth.py
"""
宿主侧认证：颁发 JWT（HS256），以及 /me 查询当前用户。users 资源的 ACL 依赖这里解析出的身份。

日志事件（通过 users_api.infra.logger.emit 发出）：
- auth_login_attempt：收到登录请求（不记录明文密码）
- auth_login_failed：登录失败（原因：inactive / not_found_or_bad_password）
- auth_login_success：登录成功（包含 user_id、roles）
- auth_whoami：查询当前用户
- auth_login_storage_error：查询用户时存储出错（503）
"""
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from users_api.core.context import required_user_dependency
from users_api.core.errors import NotFoundError, StorageError
from users_api.core.models_user import User
from users_api.core.security import create_access_token
from users_api.infra.logger import emit, emit_error


class LoginInput(BaseModel):
    username: str
    password: str


class LoginOutput(BaseModel):
    access_token: str


def build_auth_router(resource) -> APIRouter:
    # 子路由只写 "/login"、"/me"；由主程序以 "/api" 前缀挂载
    router = APIRouter(tags=["auth"])
    get_current_user = required_user_dependency(resource)

    @router.post("/login", response_model=LoginOutput)
    def login(body: LoginInput, request: Request):
        emit(
            "auth_login_attempt",
            username=body.username,
            ip=str(request.client.host) if request.client else None,
            ua=request.headers.get("user-agent"),
        )

        try:
            user = resource.user_repository().get_user_by_username(body.username)
        except NotFoundError:
            user = None
        except StorageError as e:
            emit_error("auth_login_storage_error", username=body.username, error=e.message)
            raise HTTPException(status_code=503, detail=e.message)

        if not user or not user.is_active() or not user.verify_password(body.password):
            # 不区分“用户不存在”和“口令错误”，避免信息泄露
            reason = "inactive" if (user and not user.is_active()) else "not_found_or_bad_password"
            emit("auth_login_failed", username=body.username, reason=reason)
            raise HTTPException(status_code=401, detail="Invalid credentials")

        token = create_access_token({
            "sub": user.id,
            "username": user.username,
            "roles": list(user.roles),
        })
        emit("auth_login_success", user_id=user.id, username=user.username, roles=user.roles)
        return {"access_token": token}

    @router.get("/me")
    def whoami(user: User = Depends(get_current_user)):
        emit("auth_whoami", user_id=user.id, roles=user.roles)
        return {"success": True, "message": "Current user retrieved", "user": user.public()}

    return router

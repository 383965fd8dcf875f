"""
模块职能：
- UsersResource：可插拔的 users 资源。持有数据库、渲染器、仓储工厂、生命周期钩子，
  构造时一次性生成只读路由表（routes）。
- ResourceOptions / ControllerHooks：宿主在装配时注入的配置。
- ApiRequest：分发器从 Starlette Request 提取出的请求快照，控制器与 ACL 只看它。
- JSONRenderer：把响应 DTO 序列化为 JSONResponse。

与其他模块的关系：
- routes.build_routes(resource, base_path) 生成路由表；routes.mount_routes() 挂到 FastAPI
- controllers / acl 中的处理函数第一个参数都是 resource
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from users_api.core.models_user import User
from users_api.infra.db import MongoDatabase
from users_api.resource.repository import UserRepository, UserRepositoryFactory
from users_api.resource.schemas import ErrorResponseV0

DEFAULT_BASE_PATH = "/api/users"


@dataclass(frozen=True)
class ApiRequest:
    method: str
    path: str
    path_params: Mapping[str, str] = field(default_factory=dict)
    query: Mapping[str, str] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""
    # 已通过认证的请求者；匿名为 None
    user: Optional[User] = None

    def param(self, name: str) -> str:
        return self.path_params.get(name, "")

    def form_value(self, name: str) -> str:
        return self.query.get(name, "")


@dataclass(frozen=True)
class PostCreateUserHookPayload:
    user: User


@dataclass(frozen=True)
class PostConfirmUserHookPayload:
    user: User


Hook = Callable[["UsersResource", ApiRequest, Any], None]


def _noop_hook(resource, request, payload):
    return None


@dataclass
class ControllerHooks:
    post_create_user: Hook = _noop_hook
    post_confirm_user: Hook = _noop_hook


class JSONRenderer:
    def render(self, status: int, value: Any) -> JSONResponse:
        if isinstance(value, BaseModel):
            value = value.model_dump()
        return JSONResponse(status_code=status, content=jsonable_encoder(value))


@dataclass
class ResourceOptions:
    database: Optional[MongoDatabase] = None
    renderer: Any = None
    base_path: str = DEFAULT_BASE_PATH
    repository_factory: Any = None
    hooks: Optional[ControllerHooks] = None


class UsersResource:
    def __init__(self, options: ResourceOptions):
        if options.database is None:
            raise ValueError("ResourceOptions.database is required")

        self.options = options
        self.database = options.database
        self.renderer = options.renderer or JSONRenderer()
        self.repository_factory = options.repository_factory or UserRepositoryFactory()
        hooks = options.hooks or ControllerHooks()
        # 允许宿主只传一个钩子，另一个显式传 None
        self.hooks = ControllerHooks(
            post_create_user=hooks.post_create_user or _noop_hook,
            post_confirm_user=hooks.post_confirm_user or _noop_hook,
        )
        self.base_path = (options.base_path or DEFAULT_BASE_PATH).rstrip("/") or DEFAULT_BASE_PATH

        from users_api.resource.routes import build_routes  # 延迟导入避免循环
        self.routes = build_routes(self, self.base_path)

    def user_repository(self) -> UserRepository:
        return self.repository_factory.new(self.database)

    def render(self, status: int, value: Any):
        return self.renderer.render(status, value)

    def render_error(self, status: int, message: str):
        return self.render(status, ErrorResponseV0(message=message))

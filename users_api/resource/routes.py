"""
模块职能：
- build_routes(resource, base_path)：生成只读路由表（tuple[Route]），构造一次、不再修改
- mount_routes(router, resource)：把路由表挂到 FastAPI（APIRouter 或 FastAPI 实例）
- 分发流程：读取请求体 → 解析当前用户 → ACL 判定 → 选择 API 版本 → 线程池里执行同步控制器

版本选择：
- Accept: application/json;version=0.0 中的 version 参数，缺省用路由的 default_version
- 未注册的版本 → 400 "Unsupported API version: x"

日志：
- users_acl_denied / users_version_unsupported
"""
from dataclasses import dataclass
from functools import partial
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Tuple

from fastapi import Depends, Request
from starlette.concurrency import run_in_threadpool

from users_api.core.context import optional_user_dependency
from users_api.core.models_user import User
from users_api.infra.logger import emit
from users_api.resource import acl, controllers
from users_api.resource.resource import DEFAULT_BASE_PATH, ApiRequest

LIST_USERS = "ListUsers"
COUNT_USERS = "CountUsers"
GET_USER = "GetUser"
CREATE_USER = "CreateUser"
UPDATE_USERS = "UpdateUsers"
DELETE_ALL_USERS = "DeleteAllUsers"
CONFIRM_USER = "ConfirmUser"
UPDATE_USER = "UpdateUser"
DELETE_USER = "DeleteUser"

DEFAULT_VERSION = "0.0"


@dataclass(frozen=True)
class Route:
    name: str
    method: str
    pattern: str
    default_version: str
    handlers: Mapping[str, Callable]
    acl: Callable


# (name, method, pattern, {version: controller}, acl)
# 静态的 /count 必须排在 /{id} 之前
_BASE_ROUTES = (
    (LIST_USERS, "GET", "/api/users",
     {"0.0": controllers.handle_list_users_v0}, acl.handle_list_users_acl),
    (COUNT_USERS, "GET", "/api/users/count",
     {"0.0": controllers.handle_count_users_v0}, acl.handle_count_users_acl),
    (CREATE_USER, "POST", "/api/users",
     {"0.0": controllers.handle_create_user_v0}, acl.handle_create_user_acl),
    (UPDATE_USERS, "PUT", "/api/users",
     {"0.0": controllers.handle_update_users_v0}, acl.handle_update_users_acl),
    (DELETE_ALL_USERS, "DELETE", "/api/users",
     {"0.0": controllers.handle_delete_all_users_v0}, acl.handle_delete_all_users_acl),
    (GET_USER, "GET", "/api/users/{id}",
     {"0.0": controllers.handle_get_user_v0}, acl.handle_get_user_acl),
    # 邮件里的确认链接必须可点击，所以是 GET
    (CONFIRM_USER, "GET", "/api/users/{id}/confirm",
     {"0.0": controllers.handle_confirm_user_v0}, acl.handle_confirm_user_acl),
    (UPDATE_USER, "PUT", "/api/users/{id}",
     {"0.0": controllers.handle_update_user_v0}, acl.handle_update_user_acl),
    (DELETE_USER, "DELETE", "/api/users/{id}",
     {"0.0": controllers.handle_delete_user_v0}, acl.handle_delete_user_acl),
)


def build_routes(resource, base_path: str = DEFAULT_BASE_PATH) -> Tuple[Route, ...]:
    base_path = base_path or DEFAULT_BASE_PATH
    routes = []
    for name, method, pattern, handlers, acl_fn in _BASE_ROUTES:
        routes.append(Route(
            name=name,
            method=method,
            pattern=base_path + pattern[len(DEFAULT_BASE_PATH):],
            default_version=DEFAULT_VERSION,
            handlers=MappingProxyType({v: partial(h, resource) for v, h in handlers.items()}),
            acl=partial(acl_fn, resource),
        ))
    return tuple(routes)


def requested_version(headers: Mapping[str, str]) -> Optional[str]:
    """从 Accept 头里取 version 参数，例如 application/json;version=0.0"""
    accept = headers.get("accept", "")
    for media_range in accept.split(","):
        for param in media_range.split(";")[1:]:
            key, _, value = param.partition("=")
            if key.strip().lower() == "version" and value.strip():
                return value.strip().strip('"')
    return None


def _make_endpoint(resource, route: Route, current_user):
    async def endpoint(request: Request, user: Optional[User] = Depends(current_user)):
        api_request = ApiRequest(
            method=request.method,
            path=request.url.path,
            path_params=dict(request.path_params),
            query=dict(request.query_params),
            headers=dict(request.headers),
            body=await request.body(),
            user=user,
        )

        allowed, reason = await run_in_threadpool(route.acl, api_request, user)
        if not allowed:
            emit("users_acl_denied", route=route.name,
                 user_id=user.id if user else None, reason=reason)
            return resource.render_error(403, reason or "Forbidden")

        version = requested_version(api_request.headers) or route.default_version
        handler = route.handlers.get(version)
        if handler is None:
            emit("users_version_unsupported", route=route.name, version=version)
            return resource.render_error(400, f"Unsupported API version: {version}")

        return await run_in_threadpool(handler, api_request)

    endpoint.__name__ = route.name
    return endpoint


def mount_routes(router, resource):
    current_user = optional_user_dependency(resource)
    for route in resource.routes:
        router.add_api_route(
            route.pattern,
            _make_endpoint(resource, route, current_user),
            methods=[route.method],
            name=route.name,
            tags=["users"],
        )
    return router

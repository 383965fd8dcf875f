"""
模块职能：
- 每个端点一个 ACL 判定函数：(resource, request, user_or_none) -> (allowed, reason)
- 纯判定、无副作用，分发器在控制器执行前调用；拒绝时由分发器渲染 403

规则：
- 列表/计数/批量更新/全部删除/单个删除：必须是已登录、active 的 admin
- 查看单个用户、确认邮箱：允许匿名
- 创建用户：匿名可自助注册；已登录时只有 active admin 可以创建
- 更新单个用户：active admin，或 active 用户本人（需要先按 id 查出目标用户比对）
"""
from typing import Optional, Tuple

from users_api.core.errors import UsersError
from users_api.core.models_user import User, UserRole

Decision = Tuple[bool, str]


def _is_active_admin(user: Optional[User]) -> bool:
    return user is not None and user.is_active() and user.has_role(UserRole.admin)


def _require_active_admin(user: Optional[User]) -> Decision:
    if user is None:
        return False, ""
    if not user.is_active():
        return False, ""
    if not user.has_role(UserRole.admin):
        return False, ""
    return True, ""


def handle_list_users_acl(resource, request, user: Optional[User]) -> Decision:
    return _require_active_admin(user)


def handle_count_users_acl(resource, request, user: Optional[User]) -> Decision:
    return _require_active_admin(user)


def handle_update_users_acl(resource, request, user: Optional[User]) -> Decision:
    return _require_active_admin(user)


def handle_delete_all_users_acl(resource, request, user: Optional[User]) -> Decision:
    return _require_active_admin(user)


def handle_delete_user_acl(resource, request, user: Optional[User]) -> Decision:
    return _require_active_admin(user)


def handle_get_user_acl(resource, request, user: Optional[User]) -> Decision:
    return True, ""


def handle_confirm_user_acl(resource, request, user: Optional[User]) -> Decision:
    # 身份由邮件里的一次性 code 证明，不依赖会话
    return True, ""


def handle_create_user_acl(resource, request, user: Optional[User]) -> Decision:
    if user is None:
        return True, ""
    return _require_active_admin(user)


def handle_update_user_acl(resource, request, user: Optional[User]) -> Decision:
    if user is None or not user.is_active():
        return False, ""
    if _is_active_admin(user):
        return True, ""

    try:
        target = resource.user_repository().get_user_by_id(request.param("id"))
    except UsersError:
        return False, "Invalid user"
    if target.id == user.id:
        return True, ""
    return False, ""

"""
模块职能：
- users 资源 v0 版本的控制器：解析请求 → 业务校验 → 调用仓储 → 渲染统一信封
- 生命周期钩子：创建成功后 post_create_user，确认成功后 post_confirm_user

错误处理：
- 仓储/校验/钩子错误都是 UsersError，在本模块内渲染为 {"success": false, "message"}（400）
- 钩子失败时记录已经落库，不回滚

日志：
- users_create / users_create_failed / users_confirm / users_update / users_batch
- users_delete / users_delete_all / users_hook_failed
"""
from typing import Optional

from pydantic import BaseModel, ValidationError

from users_api.core.errors import HookError, StorageError, UsersError, ValidationFailed
from users_api.core.models_user import User, UserRole
from users_api.core.state_machine import UserStatus, can_transit, is_known_status
from users_api.infra.logger import emit, emit_error
from users_api.resource.repository import GET_USERS_LIMIT
from users_api.resource.resource import (
    ApiRequest, PostConfirmUserHookPayload, PostCreateUserHookPayload,
)
from users_api.resource.schemas import (
    ConfirmUserResponseV0, CountUsersResponseV0, CreateUserRequestV0, EnvelopeV0,
    ListUsersResponseV0, UpdateUserRequestV0, UpdateUsersRequestV0,
    UpdateUsersResponseV0, UserResponseV0,
)

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = GET_USERS_LIMIT
BATCH_ACTION_DELETE = "delete"


def decode_body(request: ApiRequest, model: type[BaseModel]):
    try:
        return model.model_validate_json(request.body or b"")
    except ValidationError as e:
        raise ValidationFailed(f"Request body parse error: {e}")


def _run_hook(hook, resource, request: ApiRequest, payload):
    try:
        hook(resource, request, payload)
    except UsersError:
        raise
    except Exception as e:
        emit_error("users_hook_failed", hook=getattr(hook, "__name__", repr(hook)), error=str(e))
        raise HookError(str(e))


def _is_active_admin(user: Optional[User]) -> bool:
    return user is not None and user.is_active() and user.has_role(UserRole.admin)


def _per_page(value: str) -> int:
    try:
        n = int(value)
    except (TypeError, ValueError):
        return DEFAULT_PER_PAGE
    if n <= 0:
        return DEFAULT_PER_PAGE
    return min(n, MAX_PER_PAGE)


def handle_list_users_v0(resource, request: ApiRequest):
    repo = resource.user_repository()
    try:
        users = repo.filter_users(
            field=request.form_value("field"),
            query=request.form_value("q"),
            last_id=request.form_value("last_id"),
            limit=_per_page(request.form_value("per_page")),
            sort=request.form_value("sort"),
        )
    except UsersError as e:
        return resource.render_error(e.status_code, e.message)

    return resource.render(200, ListUsersResponseV0(
        success=True,
        message="User list retrieved",
        users=[u.public() for u in users],
        last_id=users[-1].id if users else "",
    ))


def handle_count_users_v0(resource, request: ApiRequest):
    repo = resource.user_repository()
    try:
        count = repo.count_users(field=request.form_value("field"), query=request.form_value("q"))
    except UsersError as e:
        return resource.render_error(e.status_code, e.message)

    return resource.render(200, CountUsersResponseV0(
        success=True, message="Users count retrieved", count=count,
    ))


def handle_create_user_v0(resource, request: ApiRequest):
    repo = resource.user_repository()
    try:
        body = decode_body(request, CreateUserRequestV0)

        if repo.user_exists_by_username(body.user.username):
            raise ValidationFailed("Username already exists")
        if repo.user_exists_by_email(body.user.email):
            raise ValidationFailed("User with email address already exists")

        # 新用户在确认邮箱之前一律 pending 且没有角色，忽略客户端传入的 status/roles
        new_user = User(
            username=body.user.username,
            email=body.user.email,
            roles=[],
            status=UserStatus.PENDING.value,
        )
        new_user.generate_confirmation_code()
        new_user.set_password(body.user.password)

        if not new_user.is_valid():
            raise ValidationFailed("Invalid user object")

        try:
            created = repo.create_user(new_user)
        except StorageError as e:
            emit_error("users_create_failed", username=new_user.username, error=e.message)
            raise ValidationFailed("Failed to save user object")
        emit("users_create", user_id=created.id, username=created.username)

        # 例：发送带确认链接的邮件
        _run_hook(resource.hooks.post_create_user, resource, request,
                  PostCreateUserHookPayload(user=created))
    except UsersError as e:
        return resource.render_error(e.status_code, e.message)

    return resource.render(201, UserResponseV0(
        success=True, message="User created", user=created.public(),
    ))


def handle_confirm_user_v0(resource, request: ApiRequest):
    id = request.param("id")
    code = request.form_value("code")
    repo = resource.user_repository()
    try:
        user = repo.get_user_by_id(id)
        if user.status != UserStatus.PENDING.value or not can_transit(user.status, UserStatus.ACTIVE):
            raise ValidationFailed("User not pending confirmation")
        if not user.is_code_verified(code):
            emit("users_confirm_bad_code", user_id=id)
            raise ValidationFailed("Invalid code")

        updated = repo.update_user(id, User(
            status=UserStatus.ACTIVE.value,
            roles=[UserRole.user.value],
        ))
        emit("users_confirm", user_id=id, username=updated.username)

        _run_hook(resource.hooks.post_confirm_user, resource, request,
                  PostConfirmUserHookPayload(user=updated))
    except UsersError as e:
        return resource.render_error(e.status_code, e.message)

    return resource.render(200, ConfirmUserResponseV0(
        success=True, message="User confirmed", code=code, user=updated.public(),
    ))


def handle_get_user_v0(resource, request: ApiRequest):
    repo = resource.user_repository()
    try:
        user = repo.get_user_by_id(request.param("id"))
    except UsersError:
        return resource.render_error(400, "User not found")

    return resource.render(200, UserResponseV0(
        success=True, message="User retrieved", user=user.public(),
    ))


def handle_update_user_v0(resource, request: ApiRequest):
    id = request.param("id")
    repo = resource.user_repository()
    try:
        body = decode_body(request, UpdateUserRequestV0)
        patch = body.user
        if patch.status and not is_known_status(patch.status):
            raise ValidationFailed(f"Invalid status: `{patch.status}`")
        if patch.email and "@" not in patch.email:
            raise ValidationFailed(f"Invalid email: `{patch.email}`")
        # 非管理员只能改自己的资料，角色与状态只能由 admin 修改
        if (patch.roles or patch.status) and not _is_active_admin(request.user):
            emit("users_update_privileged_denied", user_id=id,
                 requester_id=request.user.id if request.user else None)
            raise ValidationFailed("Only admins may change roles or status")

        user = repo.update_user(id, User(
            username=patch.username,
            email=patch.email,
            status=patch.status,
            roles=patch.roles,
        ))
        emit("users_update", user_id=id, fields=[k for k, v in patch.model_dump().items() if v])
    except UsersError as e:
        return resource.render_error(e.status_code, e.message)

    return resource.render(200, UserResponseV0(
        success=True, message="User updated", user=user.public(),
    ))


def handle_update_users_v0(resource, request: ApiRequest):
    try:
        body = decode_body(request, UpdateUsersRequestV0)
    except UsersError as e:
        return resource.render_error(e.status_code, e.message)

    try:
        if body.action != BATCH_ACTION_DELETE:
            raise ValidationFailed("Invalid action")
        deleted = resource.user_repository().delete_users(body.ids)
        emit("users_batch", action=body.action, requested=len(body.ids), deleted=deleted)
    except UsersError as e:
        return resource.render(e.status_code, UpdateUsersResponseV0(
            success=False, message=e.message, action=body.action, ids=body.ids,
        ))

    return resource.render(200, UpdateUsersResponseV0(
        success=True, message="User list updated", action=body.action, ids=body.ids,
    ))


def handle_delete_all_users_v0(resource, request: ApiRequest):
    try:
        resource.user_repository().delete_all_users()
    except UsersError as e:
        return resource.render_error(e.status_code, e.message)
    emit("users_delete_all")
    return resource.render(200, EnvelopeV0(success=True, message="All users deleted"))


def handle_delete_user_v0(resource, request: ApiRequest):
    id = request.param("id")
    try:
        resource.user_repository().delete_user(id)
    except UsersError as e:
        return resource.render_error(e.status_code, e.message)
    emit("users_delete", user_id=id)
    return resource.render(200, EnvelopeV0(success=True, message="User deleted"))

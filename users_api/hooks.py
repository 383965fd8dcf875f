"""
模块职能：
- 宿主侧提供的 users 资源生命周期钩子
  - queue_confirmation_email：创建用户后把“发送确认邮件”作业放进 RQ 队列
  - log_user_confirmed：确认成功后记录事件
- default_hooks()：按 SEND_CONFIRMATION_EMAIL 决定是否启用邮件钩子

钩子签名：fn(resource, request, payload)；抛出异常即视为钩子失败（控制器渲染 400）
"""
from urllib.parse import quote

from users_api import config
from users_api.infra.logger import emit
from users_api.resource.resource import ControllerHooks
from users_api.workers import queue as mail_queue


def confirm_url(resource, user) -> str:
    return (
        f"{config.public_base_url()}{resource.base_path}/{user.id}/confirm"
        f"?code={quote(user.confirmation_code)}"
    )


def queue_confirmation_email(resource, request, payload):
    user = payload.user
    mail_queue.enqueue_confirmation_email(
        user_id=user.id,
        email=user.email,
        username=user.username,
        confirm_url=confirm_url(resource, user),
    )


def log_user_confirmed(resource, request, payload):
    emit("users_confirmed_hook", user_id=payload.user.id, username=payload.user.username)


def default_hooks() -> ControllerHooks:
    if config.send_confirmation_email():
        return ControllerHooks(
            post_create_user=queue_confirmation_email,
            post_confirm_user=log_user_confirmed,
        )
    return ControllerHooks(post_confirm_user=log_user_confirmed)

""""模块职能：

Worker 侧作业：发送确认邮件（带可点击的 GET 确认链接）

主要函数：

send_confirmation_email(user_id, email, username, confirm_url)：

配置了 SMTP_HOST → 通过 SMTP 发送

未配置 → 只记录 mail_outbox 事件（开发环境直接从日志里拿链接）"""
import os
import smtplib
from email.message import EmailMessage

from users_api.infra.logger import emit, emit_error

SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "25"))
SMTP_FROM = os.getenv("SMTP_FROM", "no-reply@localhost")


def build_message(email: str, username: str, confirm_url: str) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = "Confirm your account"
    msg["From"] = SMTP_FROM
    msg["To"] = email
    msg.set_content(
        f"Hi {username},\n\n"
        f"Please confirm your account by opening the link below:\n\n"
        f"{confirm_url}\n"
    )
    return msg


def send_confirmation_email(user_id: str, email: str, username: str, confirm_url: str) -> dict:
    emit("mail_confirmation_start", user_id=user_id, to=email)
    if not SMTP_HOST:
        emit("mail_outbox", user_id=user_id, to=email, confirm_url=confirm_url)
        return {"ok": True, "delivered": False}

    try:
        with smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=10) as smtp:
            smtp.send_message(build_message(email, username, confirm_url))
    except (smtplib.SMTPException, OSError) as e:
        emit_error("mail_confirmation_failed", user_id=user_id, to=email, error=str(e))
        raise
    emit("mail_confirmation_sent", user_id=user_id, to=email)
    return {"ok": True, "delivered": True}

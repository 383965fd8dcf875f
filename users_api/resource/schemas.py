"""
模块职能：
- v0 版本的请求/响应 DTO（pydantic）。响应统一信封：{"success": bool, "message": str, ...payload}

说明：
- 请求体里缺失的字符串字段默认为 ""，交给控制器做业务校验（而不是解析错误）
- 响应里的 user 一律是 User.public() 的结果，不含口令哈希与确认码
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class NewUserV0(BaseModel):
    username: str = ""
    email: str = ""
    password: str = ""
    # 客户端可能携带，但会被忽略：新用户一律 pending + 无角色
    status: Optional[str] = None
    roles: Optional[List[str]] = None


class UserPatchV0(BaseModel):
    username: str = ""
    email: str = ""
    status: str = ""
    roles: List[str] = Field(default_factory=list)


class CreateUserRequestV0(BaseModel):
    user: NewUserV0 = Field(default_factory=NewUserV0)


class UpdateUserRequestV0(BaseModel):
    user: UserPatchV0 = Field(default_factory=UserPatchV0)


class UpdateUsersRequestV0(BaseModel):
    action: str = ""
    ids: List[str] = Field(default_factory=list)


class EnvelopeV0(BaseModel):
    success: bool
    message: str = ""


class ErrorResponseV0(EnvelopeV0):
    success: bool = False


class ListUsersResponseV0(EnvelopeV0):
    users: List[Dict[str, Any]] = Field(default_factory=list)
    last_id: str = ""


class CountUsersResponseV0(EnvelopeV0):
    count: int = 0


class UserResponseV0(EnvelopeV0):
    user: Dict[str, Any] = Field(default_factory=dict)


class ConfirmUserResponseV0(UserResponseV0):
    code: str = ""


class UpdateUsersResponseV0(EnvelopeV0):
    action: str = ""
    ids: List[str] = Field(default_factory=list)

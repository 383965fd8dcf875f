""""模块职能：

定义 User 的生命周期状态与合法迁移，保障“pending→active(→disabled)”的有序性

主要函数/枚举：

UserStatus：状态枚举

can_transit(src, dst)：判断是否允许状态迁移"""

from enum import Enum


class UserStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    DISABLED = "disabled"


VALID = {
    "pending": {"active"},
    "active": {"disabled"},
    "disabled": {"active"},
}


def can_transit(src: UserStatus, dst: UserStatus) -> bool:
    return UserStatus(dst).value in VALID[UserStatus(src).value]


def is_known_status(value: str) -> bool:
    return value in VALID

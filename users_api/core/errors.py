"""
模块职能：
- 资源层统一的错误类型。控制器捕获 UsersError 后渲染为 {"success": false, "message": ...}。

类型：
- InvalidIdError：id 不是 24 位十六进制
- NotFoundError：记录不存在
- ValidationFailed：字段缺失/非法、用户名或邮箱重复、非法批量动作
- StorageError：底层存储错误（消息原样透传驱动文本）
- HookError：生命周期钩子失败（记录可能已经落库）
"""


class UsersError(Exception):
    status_code = 400

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidIdError(UsersError):
    def __init__(self, value):
        super().__init__(f"Invalid ObjectId: `{value}`")
        self.value = value


class NotFoundError(UsersError):
    def __init__(self, message: str = "not found"):
        super().__init__(message)


class ValidationFailed(UsersError):
    pass


class StorageError(UsersError):
    pass


class HookError(UsersError):
    pass

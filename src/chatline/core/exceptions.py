"""私信子系统异常体系

所有异常携带机器可读的 code 与对应的 HTTP 状态码，
gateway 路由统一转换为 {"error": {"code", "message"}} 响应体。
"""


class MessagingError(Exception):
    """私信子系统基础异常"""

    code: str = "MESSAGING_ERROR"
    status_code: int = 500

    def __init__(self, message: str, code: str | None = None) -> None:
        """
        Args:
            message: 错误描述
            code: 覆盖类级别的错误码（例如 USER_NOT_FOUND）
        """
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(MessagingError):
    """请求字段缺失或越界，在访问存储之前拒绝"""

    code = "VALIDATION_ERROR"
    status_code = 400


class InvalidArgumentError(ValidationError):
    """参数格式非法（例如空 user id、无法解析的会话 key）"""

    code = "INVALID_ARGUMENT"


class AuthenticationError(MessagingError):
    """请求未携带经过认证的调用者身份"""

    code = "UNAUTHENTICATED"
    status_code = 401


class UnauthorizedError(MessagingError):
    """调用者不是消息的发送者，无权编辑或删除"""

    code = "NOT_MESSAGE_OWNER"
    status_code = 403


class NotFoundError(MessagingError):
    """用户、消息或会话不存在（已删除的消息同样视为不存在）"""

    code = "NOT_FOUND"
    status_code = 404


class StorageError(MessagingError):
    """持久化失败

    记录日志后原样上抛给调用方，不做自动重试。
    """

    code = "STORAGE_ERROR"
    status_code = 500

    def __init__(self, operation: str, original_error: Exception) -> None:
        """
        Args:
            operation: 失败的存储操作名称
            original_error: 原始数据库异常
        """
        super().__init__(f"存储操作失败: {operation} -- {original_error}")
        self.operation = operation
        self.original_error = original_error

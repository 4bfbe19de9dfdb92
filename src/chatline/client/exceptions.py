"""客户端异常体系"""


class ClientError(Exception):
    """服务端返回错误响应体时抛出"""

    def __init__(self, status_code: int, code: str, message: str) -> None:
        """
        Args:
            status_code: HTTP 状态码
            code: 错误响应体中的机器可读错误码
            message: 错误描述
        """
        super().__init__(f"{status_code} {code}: {message}")
        self.status_code = status_code
        self.code = code
        self.message = message


class SendFailedError(ClientError):
    """发送失败 -- 对应的乐观消息已从视图中回滚"""

    def __init__(self, local_id: str, status_code: int, code: str, message: str) -> None:
        super().__init__(status_code, code, message)
        self.local_id = local_id

"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 CLI 入口统一捕获、打印诊断信息并以非零状态退出。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "CONFIG_PARSE_ERROR"）。
        message: 用户可读错误信息。
        http_status: 与 HTTP 相关的错误携带的状态码，默认 400。
        extra: 其他补充字段（例如 path、provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ConfigError(BusinessError):
    """配置文件缺失、无法解析或校验失败。"""


class TokenizerError(BusinessError):
    """分词编码表加载失败，启动阶段即终止。"""


class TransportError(BusinessError):
    """HTTP 客户端构造失败。"""


class InputError(BusinessError):
    """读取用户输入失败（例如 EOF）。"""


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时、流读取中断等。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""


class RateLimitError(BusinessError):
    """Provider 限流错误。客户端不做重试，直接终止。"""


class ValidationError(BusinessError):
    """参数校验失败。"""

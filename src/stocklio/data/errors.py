"""
行情请求错误类型

QuoteClient 抛出这些异常；各 Fetcher 在边界处捕获并转换为
带哨兵值的结果对象，不会继续向调用方抛出。
"""

from typing import Optional


class QuoteError(Exception):
    """行情请求失败基类"""

    kind = "QuoteError"

    def __init__(self, message: str, symbol: Optional[str] = None):
        super().__init__(message)
        self.symbol = symbol
        self.message = message

    def __repr__(self):
        return f"{type(self).__name__}(symbol={self.symbol!r}, message={self.message!r})"


class InvalidRequest(QuoteError):
    """代码为空、含非法字符或无法构造 URL"""

    kind = "InvalidRequest"


class NetworkFailure(QuoteError):
    """超时、连接错误或非 2xx 状态码"""

    kind = "NetworkFailure"

    def __init__(self, message: str, symbol: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message, symbol)
        self.status = status


class MalformedResponse(QuoteError):
    """JSON 无法解析或缺少必需字段"""

    kind = "MalformedResponse"


class ProviderError(QuoteError):
    """响应中显式携带 error 对象"""

    kind = "ProviderError"

    def __init__(
        self,
        message: str,
        symbol: Optional[str] = None,
        code: Optional[str] = None,
        description: Optional[str] = None,
    ):
        super().__init__(message, symbol)
        self.code = code
        self.description = description

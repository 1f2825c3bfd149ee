"""Provider 抽象接口。

ChatEngine 不直接依赖具体厂商的 HTTP 细节，而是依赖此协议：

- build_payload(req): 把 ChatRequest 转成厂商 API 的 JSON 请求体（纯函数）。
- open_stream(req): 发送流式请求，进入时已收到响应头且状态码为成功，
  产出原始字节块的异步迭代器，交给 StreamDecoder 解析。
"""

from typing import AsyncContextManager, AsyncIterator, Protocol

from chat_core.domain.models import ChatRequest


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。"""

    name: str

    def build_payload(self, req: ChatRequest) -> dict:
        ...

    def open_stream(self, req: ChatRequest) -> AsyncContextManager[AsyncIterator[bytes]]:
        ...

    async def aclose(self) -> None:
        ...

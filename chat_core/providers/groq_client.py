"""Groq Provider 适配器。

Groq 提供 OpenAI 兼容的 chat/completions 端点：
- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <api_key>

本模块负责：

1. 把统一的 ChatRequest 转换为请求 JSON（build_payload，纯函数）。
2. 发送流式请求并把网络错误、限流、服务端错误转换为业务异常。
3. 把响应体的原始字节块交给 StreamDecoder，本身不解析 SSE。

超时只作用于建立连接和等待响应头；开始接收流以后不再设置逐块读超时，
服务端在流中途卡住会让这一轮一直等待。
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import httpx

from chat_core.domain.exceptions import (
    ApiError,
    NetworkError,
    RateLimitError,
    TransportError,
)
from chat_core.domain.models import ChatMessage, ChatRequest
from chat_core.providers.registry import GROQ_CONFIG


class GroqClient:
    """Groq Provider 客户端实现。

    - name: Provider 名称（供日志使用）。
    - build_payload: ChatRequest -> 请求 JSON。
    - open_stream: 异步上下文管理器，进入时已确认响应成功，产出字节块迭代器。
    """

    name = "groq"

    def __init__(self, settings, http_client: Optional[httpx.AsyncClient] = None):
        # settings 里包含 base_url、api_key、超时等配置
        self._settings = settings
        if http_client is None:
            http_client = self._create_http_client(settings.http_timeout)
        self._client = http_client

    @staticmethod
    def _create_http_client(timeout: float) -> httpx.AsyncClient:
        try:
            return httpx.AsyncClient(
                timeout=httpx.Timeout(timeout, read=None),
                trust_env=False,
            )
        except (TypeError, ValueError) as e:
            raise TransportError(code="CLIENT_INIT_ERROR", message=f"Failed to create HTTP client: {e}") from e

    @property
    def base_url(self) -> str:
        return getattr(self._settings, "groq_base_url", None) or GROQ_CONFIG.base_url

    def build_payload(self, req: ChatRequest) -> dict:
        """将 ChatRequest 转成 Groq 所需的请求 JSON。"""

        model_cfg = GROQ_CONFIG.models[req.model]
        return {
            "messages": [self._message_to_payload(m) for m in req.messages],
            "model": model_cfg.provider_model,
            "temperature": req.temperature,
            "max_tokens": req.max_tokens or model_cfg.max_tokens,
            "top_p": req.top_p,
            "stream": req.stream,
            "stop": req.stop,
        }

    @asynccontextmanager
    async def open_stream(self, req: ChatRequest) -> AsyncIterator[AsyncIterator[bytes]]:
        """发送流式请求。

        步骤：
        1. 构造请求 JSON 与认证头。
        2. 发送请求，等待响应头（受 http_timeout 限制）。
        3. 429/4xx/5xx 转换为业务异常。
        4. 产出响应体字节块迭代器，退出时关闭响应。
        """

        payload = self.build_payload(req)
        url = f"{self.base_url}/chat/completions"
        timeout = self._settings.http_timeout
        try:
            request = self._client.build_request(
                "POST",
                url,
                json=payload,
                headers={
                    "Authorization": f"Bearer {self._settings.groq_api_key}",
                    "Content-Type": "application/json",
                },
            )
            resp = await asyncio.wait_for(self._client.send(request, stream=True), timeout=timeout)
        except asyncio.TimeoutError as e:
            # 在超时时间内没有连上或没有收到响应头
            raise NetworkError(
                code="NETWORK_TIMEOUT",
                message=f"No response from {url} within {timeout:g}s",
            ) from e
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=f"Failed to send request: {e}") from e
        except httpx.InvalidURL as e:
            raise NetworkError(code="INVALID_URL", message=f"Invalid request URL {url!r}: {e}") from e

        try:
            if resp.status_code == 429:
                raise RateLimitError(code="RATE_LIMIT", message="Groq rate limit", http_status=429)
            if resp.status_code >= 400:
                detail = await self._read_error_body(resp)
                raise ApiError(
                    code="API_ERROR",
                    message=f"Groq API returned {resp.status_code}: {detail}",
                    http_status=resp.status_code,
                )
            yield resp.aiter_bytes()
        finally:
            await resp.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @staticmethod
    async def _read_error_body(resp: httpx.Response) -> str:
        try:
            body = await resp.aread()
        except (httpx.HTTPError, httpx.StreamError):
            return resp.reason_phrase
        text = body.decode("utf-8", errors="replace").strip()
        return text or resp.reason_phrase

    @staticmethod
    def _message_to_payload(message: ChatMessage) -> Dict[str, Any]:
        # 只发送 role/content，不携带任何额外元数据
        return {"role": message.role, "content": message.content}

"""对话引擎核心模块。

一轮对话：写入用户消息 -> 读取会话快照 -> 裁剪到 token 预算 -> 构造请求
-> 调用 provider 流式接口 -> 解码并实时产出增量 -> 写入助手消息。

任何一步失败都直接向上抛出，不做重试；本轮已写入的用户消息保留在会话中，
由于进程随后会退出，这不会造成可见影响。
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, List, Optional
from uuid import uuid4

from chat_core.context.tokens import count_tokens
from chat_core.context.window import TokenCounter, build_window
from chat_core.domain.conversation import ConversationStore
from chat_core.domain.models import ChatMessage, ChatRequest, ChatStreamEvent, ChatUsage
from chat_core.infrastructure.logging.logger import log_event
from chat_core.providers.base import ProviderClient
from chat_core.providers.registry import DEFAULT_MODEL, GROQ_CONFIG
from chat_core.providers.stream_decoder import StreamDecoder, iter_deltas


_DEFAULT_MODEL_CFG = GROQ_CONFIG.models[DEFAULT_MODEL]


@dataclass
class ChatConfig:
    provider: str = "groq"
    model: str = DEFAULT_MODEL
    max_context_tokens: int = 8000  # 上下文预算，同时作为生成上限
    temperature: float = _DEFAULT_MODEL_CFG.default_temperature
    top_p: float = _DEFAULT_MODEL_CFG.default_top_p

    @classmethod
    def from_settings(cls, settings) -> "ChatConfig":
        return cls(max_context_tokens=settings.max_context_tokens)


class ChatEngine:
    def __init__(
        self,
        store: ConversationStore,
        provider_client: ProviderClient,
        config: Optional[ChatConfig] = None,
        counter: TokenCounter = count_tokens,
    ):
        self._store = store
        self._provider_client = provider_client
        self._config = config or ChatConfig(provider=provider_client.name)
        self._counter = counter

    async def run_turn_stream(self, user_input: str) -> AsyncIterator[ChatStreamEvent]:
        """执行一轮流式对话，按顺序产出 request / response / delta* / final 事件。

        Args:
            user_input: 用户输入，原样写入会话（空字符串也是合法的一轮）

        Yields:
            ChatStreamEvent，final 事件携带写入会话的助手消息
        """

        start_time = time.time()
        log_ctx: Dict[str, Any] = {
            "turn_id": f"t-{uuid4().hex}",
            "provider": self._config.provider,
        }

        await self._store.append("user", user_input)
        self._log(logging.INFO, "Stored user message", log_ctx, chars=len(user_input))
        yield ChatStreamEvent(kind="request")

        history = await self._store.snapshot()
        window = build_window(history, self._config.max_context_tokens, self._counter, log_ctx)
        if not window:
            self._log(logging.WARNING, "Context window is empty", log_ctx, history_count=len(history))
        req = self._build_request(window)

        self._log(
            logging.INFO,
            "Calling provider (stream)",
            log_ctx,
            model=self._config.model,
            message_count=len(window),
            history_count=len(history),
        )

        decoder = StreamDecoder()
        async with self._provider_client.open_stream(req) as chunks:
            yield ChatStreamEvent(kind="response")
            async for delta in iter_deltas(chunks, decoder):
                yield ChatStreamEvent(kind="delta", delta_text=delta)

        if decoder.usage:
            self._log(logging.INFO, "Token usage", log_ctx, **self._usage_meta(decoder.usage))
        if decoder.skipped_lines:
            self._log(logging.INFO, "Skipped malformed stream lines", log_ctx, count=decoder.skipped_lines)

        reply = await self._store.append("assistant", decoder.text)
        elapsed = round(time.time() - start_time, 2)
        self._log(
            logging.INFO,
            "Stored assistant message",
            log_ctx,
            chars=len(reply.content),
            finish_reason=decoder.finish_reason,
            elapsed_seconds=elapsed,
        )
        yield ChatStreamEvent(
            kind="final",
            message=reply,
            usage=decoder.usage,
            meta={"finish_reason": decoder.finish_reason, "elapsed_seconds": elapsed},
        )

    async def run_turn(self, user_input: str, on_delta: Optional[Callable[[str], None]] = None) -> str:
        """非事件形式的一轮对话，返回助手回复文本。"""

        reply = ""
        async for event in self.run_turn_stream(user_input):
            if event.kind == "delta" and on_delta is not None:
                on_delta(event.delta_text or "")
            elif event.kind == "final" and event.message is not None:
                reply = event.message.content
        return reply

    def _build_request(self, window: List[ChatMessage]) -> ChatRequest:
        return ChatRequest(
            provider=self._config.provider,
            model=self._config.model,
            messages=window,
            temperature=self._config.temperature,
            top_p=self._config.top_p,
            max_tokens=self._config.max_context_tokens,
            stream=True,
            stop=None,
        )

    @staticmethod
    def _usage_meta(usage: ChatUsage) -> Dict[str, Any]:
        return {
            "prompt_tokens": usage.prompt_tokens,
            "completion_tokens": usage.completion_tokens,
            "total_tokens": usage.total_tokens,
        }

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        log_event(level, message, log_ctx, **fields)

"""流式响应（server-sent events）解码。

响应体是一串字节块，每行形如 ``data: <json>`` 或 ``data: [DONE]``：

- 字节按 UTF-8 增量解码，非法字节替换为 U+FFFD，永不因编码问题失败；
  跨块的多字节字符与跨块的半行都会被拼接后再处理。
- 只有以 ``data: `` 开头的行才是事件，其它行忽略。
- ``[DONE]`` 立即结束解码，之后的行和字节块都不再处理。
- JSON 解析失败或没有 ``choices[0].delta.content`` 的行直接跳过，
  保证未知事件格式不会中断整条流。
"""

import codecs
import json
import logging
from typing import Any, AsyncIterable, AsyncIterator, Callable, List, Literal, Optional

import httpx

from chat_core.domain.exceptions import NetworkError
from chat_core.domain.models import ChatUsage
from chat_core.infrastructure.logging.logger import logger


DATA_PREFIX = "data: "
DONE_MARKER = "[DONE]"


def extract_delta(payload: Any) -> Optional[str]:
    """尽力读取 ``choices[0].delta.content``，任一层缺失或类型不符都返回 None。"""

    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    delta = first.get("delta")
    if not isinstance(delta, dict):
        return None
    content = delta.get("content")
    if not isinstance(content, str):
        return None
    return content


def _parse_usage(payload: dict) -> Optional[ChatUsage]:
    # Groq 把统计放在 x_groq.usage，OpenAI 兼容实现放在顶层 usage
    usage_raw = payload.get("usage")
    if not isinstance(usage_raw, dict):
        x_groq = payload.get("x_groq")
        usage_raw = x_groq.get("usage") if isinstance(x_groq, dict) else None
    if not isinstance(usage_raw, dict):
        return None
    return ChatUsage(
        prompt_tokens=_token_count(usage_raw.get("prompt_tokens")),
        completion_tokens=_token_count(usage_raw.get("completion_tokens")),
        total_tokens=_token_count(usage_raw.get("total_tokens")),
    )


def _token_count(value: Any) -> int:
    # 类型不符按缺失处理
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return 0


class StreamDecoder:
    """把字节块还原为完整回答的状态机（reading -> done）。"""

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""
        self._pieces: List[str] = []
        self.state: Literal["reading", "done"] = "reading"
        self.usage: Optional[ChatUsage] = None
        self.finish_reason: Optional[str] = None
        self.skipped_lines = 0

    @property
    def done(self) -> bool:
        return self.state == "done"

    @property
    def text(self) -> str:
        """已累积的回答，去掉首尾空白。"""

        return "".join(self._pieces).strip()

    def feed(self, chunk: bytes) -> List[str]:
        """处理一个字节块，返回其中解析出的增量文本（按到达顺序）。"""

        if self.done:
            return []
        text = self._pending + self._decoder.decode(chunk)
        lines = text.split("\n")
        # 最后一段没有换行结尾，留到下一块再处理
        self._pending = lines.pop()
        return self._process_lines(lines)

    def close(self) -> List[str]:
        """底层流结束：处理剩余的半行，并进入 done 状态。"""

        if self.done:
            return []
        tail = self._pending + self._decoder.decode(b"", final=True)
        self._pending = ""
        deltas = self._process_lines(tail.split("\n")) if tail else []
        self.state = "done"
        return deltas

    def _process_lines(self, lines: List[str]) -> List[str]:
        deltas: List[str] = []
        for raw_line in lines:
            line = raw_line.rstrip("\r")
            if not line.startswith(DATA_PREFIX):
                continue
            data = line[len(DATA_PREFIX):]
            if data.strip() == DONE_MARKER:
                self.state = "done"
                break
            try:
                payload = json.loads(data)
            except (ValueError, RecursionError):
                # JSONDecodeError 是 ValueError 的子类；超长整数和过深嵌套也在此跳过
                self.skipped_lines += 1
                logger.debug("Skipped malformed stream line", extra={"extra": {"line": data[:200]}})
                continue
            self._record_meta(payload)
            content = extract_delta(payload)
            if content:
                self._pieces.append(content)
                deltas.append(content)
        return deltas

    def _record_meta(self, payload: Any) -> None:
        if not isinstance(payload, dict):
            return
        usage = _parse_usage(payload)
        if usage:
            self.usage = usage
        choices = payload.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            finish_reason = choices[0].get("finish_reason")
            if isinstance(finish_reason, str):
                self.finish_reason = finish_reason


async def iter_deltas(chunks: AsyncIterable[bytes], decoder: StreamDecoder) -> AsyncIterator[str]:
    """边读字节块边产出增量文本，遇到 [DONE] 或流结束为止。"""

    try:
        async for chunk in chunks:
            for delta in decoder.feed(chunk):
                yield delta
            if decoder.done:
                return
    except (httpx.HTTPError, httpx.StreamError) as exc:
        raise NetworkError(code="STREAM_READ_ERROR", message=f"Failed to read stream chunk: {exc}") from exc
    for delta in decoder.close():
        yield delta


async def decode_stream(
    chunks: AsyncIterable[bytes],
    on_delta: Optional[Callable[[str], None]] = None,
) -> str:
    """解码整条流，每个增量立即交给 on_delta，返回去掉首尾空白的完整回答。"""

    decoder = StreamDecoder()
    async for delta in iter_deltas(chunks, decoder):
        if on_delta is not None:
            on_delta(delta)
    return decoder.text

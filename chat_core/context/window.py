"""上下文窗口裁剪。

从最新的消息开始向前累加 token 数，遇到第一条放不下的消息就停止，
它以及更早的所有消息都被丢弃，最后恢复时间顺序。

这是贪心的“最近优先”选择：结果总是原会话的一段连续后缀，
不会重排、不会跳过中间的消息，也不会截断单条消息。
"""

import logging
from typing import Callable, Dict, Any, List, Optional, Sequence

from chat_core.context.tokens import count_tokens
from chat_core.domain.models import ChatMessage
from chat_core.infrastructure.logging.logger import log_event


TokenCounter = Callable[[str], int]


def truncate_conversation(
    messages: Sequence[ChatMessage],
    max_tokens: int,
    counter: TokenCounter = count_tokens,
) -> List[ChatMessage]:
    """返回 token 总数不超过 max_tokens 的最长时间后缀。

    最新一条消息本身就超出预算时返回空列表。
    """

    truncated: List[ChatMessage] = []
    total_tokens = 0
    for message in reversed(messages):
        tokens = counter(message.content)
        if total_tokens + tokens > max_tokens:
            break
        total_tokens += tokens
        truncated.append(message)
    truncated.reverse()
    return truncated


def build_window(
    messages: Sequence[ChatMessage],
    max_tokens: int,
    counter: TokenCounter = count_tokens,
    log_ctx: Optional[Dict[str, Any]] = None,
) -> List[ChatMessage]:
    """计算本次请求要发送的消息窗口。

    整个会话已在预算内时直接原样返回，跳过逐条扫描。
    """

    total_tokens = sum(counter(m.content) for m in messages)
    if total_tokens <= max_tokens:
        return list(messages)

    window = truncate_conversation(messages, max_tokens, counter)
    log_event(
        logging.INFO,
        "Truncated context",
        log_ctx or {},
        max_tokens=max_tokens,
        total_tokens=total_tokens,
        kept=len(window),
        trimmed=len(messages) - len(window),
    )
    return window

"""会话上下文：token 计数与窗口裁剪。"""

from chat_core.context.tokens import count_message_tokens, count_tokens, get_encoding
from chat_core.context.window import build_window, truncate_conversation

__all__ = [
    "build_window",
    "count_message_tokens",
    "count_tokens",
    "get_encoding",
    "truncate_conversation",
]

"""Token counting utilities."""

from functools import lru_cache
from typing import Iterable

import tiktoken

from chat_core.domain.exceptions import TokenizerError
from chat_core.domain.models import ChatMessage


# cl100k_base 对 llama3 等模型只是近似，但足以用来控制上下文预算
ENCODING_NAME = "cl100k_base"


@lru_cache(maxsize=None)
def get_encoding() -> tiktoken.Encoding:
    """进程内只加载一次编码表，之后只读共享。

    加载失败没有兜底的分词器，直接抛出 TokenizerError。
    """

    try:
        return tiktoken.get_encoding(ENCODING_NAME)
    except Exception as exc:
        raise TokenizerError(
            code="TOKENIZER_LOAD_ERROR",
            message=f"Failed to load tokenizer {ENCODING_NAME}: {exc}",
        ) from exc


def count_tokens(text: str) -> int:
    """Count tokens in a text string."""
    return len(get_encoding().encode_ordinary(text))


def count_message_tokens(messages: Iterable[ChatMessage]) -> int:
    return sum(count_tokens(m.content) for m in messages)

"""统一的对话与请求数据模型。

- ChatMessage: 一条对话消息（user/assistant），创建后不可变。
- ChatRequest: 发给底层 Provider 的完整请求（已裁剪的上下文窗口 + 生成参数）。
- ChatUsage: Provider 在流末尾返回的 token 统计。
- ChatStreamEvent: ChatEngine 在一轮对话中产出的流式事件。

Provider 适配器只依赖这些模型，并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass, field
from typing import List, Literal, Optional


# 会话中允许出现的消息角色
Role = Literal["user", "assistant"]
ROLES = ("user", "assistant")


@dataclass(frozen=True)
class ChatMessage:
    """一条对话消息。

    - role: 消息角色，user 或 assistant。
    - content: 纯文本内容，原样保存，不做裁剪或转义。
    """

    role: Role
    content: str


@dataclass
class ChatRequest:
    """一次完整的聊天请求。

    ChatEngine 会将会话裁剪到 token 预算内后生成 ChatRequest，再交给 ProviderClient。
    Provider 适配层负责把本结构转换成具体 API 的 JSON 请求体。
    """

    provider: str  # 逻辑 Provider 名，如 "groq"
    model: str  # 逻辑模型名，如 "chat"（再由 registry 映射为真实模型名）
    messages: List[ChatMessage]
    temperature: float = 0.7
    top_p: float = 0.9
    max_tokens: Optional[int] = None
    stream: bool = True
    stop: Optional[List[str]] = None


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatStreamEvent:
    """ChatEngine 产生的流式事件。

    kind:
        - "request": 用户消息已写入，请求即将发出（上层可显示等待指示器）。
        - "response": 服务端已返回响应头，开始接收流。
        - "delta": 回答的一段增量文本。
        - "final": 本轮结束，携带最终写入会话的助手消息。
    """

    kind: Literal["request", "response", "delta", "final"]
    delta_text: Optional[str] = None
    message: Optional[ChatMessage] = None
    usage: Optional[ChatUsage] = None
    meta: dict = field(default_factory=dict)

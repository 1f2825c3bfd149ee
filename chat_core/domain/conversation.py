"""进程内会话存储。

会话只在当前进程生命周期内存在，不做持久化。
输入阶段与回复阶段写入、网络阶段读取快照，所有访问都经过同一把 asyncio.Lock，
保证快照不会看到写了一半的消息，追加也不会与正在进行的快照交错。
"""

import asyncio
from typing import List, Protocol

from .exceptions import ValidationError
from .models import ChatMessage, ROLES


class ConversationStore(Protocol):
    async def append(self, role: str, content: str) -> ChatMessage:
        ...

    async def snapshot(self) -> List[ChatMessage]:
        ...


class InMemoryConversationStore:
    """按轮次追加的有序消息日志。"""

    def __init__(self) -> None:
        self._history: List[ChatMessage] = []
        self._lock = asyncio.Lock()

    async def append(self, role: str, content: str) -> ChatMessage:
        """在末尾追加一条消息，返回新建的 ChatMessage。"""

        if role not in ROLES:
            raise ValidationError(code="INVALID_ROLE", message=f"Unsupported role: {role!r}")
        message = ChatMessage(role=role, content=content)
        async with self._lock:
            self._history.append(message)
        return message

    async def snapshot(self) -> List[ChatMessage]:
        """返回当前完整历史的副本，后续追加不会影响已取得的快照。"""

        async with self._lock:
            return list(self._history)

    def __len__(self) -> int:
        return len(self._history)

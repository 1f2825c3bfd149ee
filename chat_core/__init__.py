"""Chat Core 顶层包。

该包提供 Groq 命令行聊天客户端的核心实现，
包括配置加载、领域模型、token 计数与上下文窗口裁剪、
Provider 适配与流式响应解码、对话引擎以及命令行交互。
"""

from chat_core.agents.chat_engine import ChatConfig, ChatEngine

__all__ = ["ChatConfig", "ChatEngine"]

"""领域层模型与协议。

包含：
- models: ChatMessage / ChatRequest / ChatUsage / ChatStreamEvent 模型。
- conversation: 进程内会话存储 InMemoryConversationStore 及 ConversationStore 协议。
- exceptions: 业务异常类型定义。
"""

"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供具体实现 (groq_client) 以及流式响应解码 (stream_decoder)。
"""

from typing import Callable, Dict, Optional

from chat_core.providers.base import ProviderClient
from chat_core.providers.groq_client import GroqClient
from chat_core.providers.registry import get_provider_config


_CLIENT_FACTORIES: Dict[str, Callable[..., ProviderClient]] = {
    "groq": GroqClient,
}


def create_provider(settings, name: Optional[str] = None) -> ProviderClient:
    """根据名称创建 Provider 实例，名称先在 registry 中解析。"""

    config = get_provider_config(name or "groq")
    return _CLIENT_FACTORIES[config.name](settings)

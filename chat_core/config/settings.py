"""配置管理模块。

从 config.yaml 加载配置，环境变量（大小写不敏感、同名字段）可覆盖文件中的值。
配置文件缺失、无法解析或校验失败都会抛出 ConfigError，在任何交互开始之前终止进程。
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import Field, ValidationError as PydanticValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from chat_core.domain.exceptions import ConfigError


CONFIG_FILE = "config.yaml"
CONFIG_FILE_ENV = "CHAT_CONFIG_FILE"


class ChatSettings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- Groq ----
    groq_api_key: str = Field(description="Groq API 密钥")
    groq_base_url: str = Field(
        default="https://api.groq.com/openai/v1",
        description="Groq API 基础URL",
    )
    http_timeout: float = Field(default=30.0, ge=1.0, description="连接与等待响应头的超时时间（秒）")

    # ---- 会话窗口 ----
    max_context_tokens: int = Field(
        default=8000,
        ge=1,
        description="每次请求发送的消息 token 总数上限，同时作为生成上限",
    )

    # ---- 终端与日志 ----
    spinner_interval: float = Field(default=0.1, gt=0, le=5.0, description="等待指示器刷新间隔（秒）")
    log_dir: str = Field(default="logs", description="日志目录")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("groq_api_key")
    @classmethod
    def validate_api_key(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @field_validator("groq_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # 文件中的值以 init 参数传入，环境变量优先于文件
        return (
            env_settings,
            init_settings,
            dotenv_settings,
            file_secret_settings,
        )


def resolve_config_path(config_file: Optional[Union[str, Path]] = None) -> Path:
    """确定配置文件路径：显式参数 > CHAT_CONFIG_FILE > ./config.yaml。"""

    raw = config_file or os.getenv(CONFIG_FILE_ENV) or CONFIG_FILE
    return Path(raw).expanduser()


def _load_config_from_yaml(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(
            code="CONFIG_READ_ERROR",
            message=f"Failed to read config file {path}: {exc}",
            path=str(path),
        ) from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(
            code="CONFIG_PARSE_ERROR",
            message=f"Failed to parse config file {path}: {exc}",
            path=str(path),
        ) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(
            code="CONFIG_PARSE_ERROR",
            message=f"Config file {path} is not a mapping",
            path=str(path),
        )
    return data


def load_settings(config_file: Optional[Union[str, Path]] = None) -> ChatSettings:
    """读取并校验配置，任何问题都转换为 ConfigError。"""

    path = resolve_config_path(config_file)
    data = _load_config_from_yaml(path)
    try:
        return ChatSettings(**data)
    except PydanticValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigError(
            code="CONFIG_INVALID",
            message=f"Invalid configuration in {path}: {problems}",
            path=str(path),
        ) from exc

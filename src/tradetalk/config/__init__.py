"""設定管理モジュール"""

from tradetalk.config.loader import (
    ConfigError,
    ConfigValidationError,
    EnvironmentVariableError,
    expand_env_vars,
    load_config,
)
from tradetalk.config.models import (
    Config,
    ConversationConfig,
    DatabaseConfig,
    InsightConfig,
    LoggingConfig,
    MessagingConfig,
    ResponseConfig,
    ServerConfig,
)

__all__ = [
    "Config",
    "ConfigError",
    "ConfigValidationError",
    "ConversationConfig",
    "DatabaseConfig",
    "EnvironmentVariableError",
    "InsightConfig",
    "LoggingConfig",
    "MessagingConfig",
    "ResponseConfig",
    "ServerConfig",
    "expand_env_vars",
    "load_config",
]

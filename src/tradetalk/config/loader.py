"""YAML設定ファイルの読み込みと環境変数展開"""

import os
import re
from dataclasses import MISSING, fields
from pathlib import Path
from typing import Any, TypeVar

import yaml

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

T = TypeVar("T")


class ConfigError(Exception):
    """設定関連の基底例外"""


class ConfigValidationError(ConfigError):
    """設定値のバリデーションエラー"""


class EnvironmentVariableError(ConfigError):
    """環境変数が見つからないエラー"""


# ${VAR_NAME} または ${VAR_NAME:-default}
ENV_VAR_PATTERN = re.compile(
    r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?\}"
)


def expand_env_vars(value: str) -> str:
    """文字列中の ${VAR_NAME} を環境変数の値に置換する

    ``${VAR_NAME:-default}`` の形式で未設定時のデフォルト値を指定できる。

    Raises:
        EnvironmentVariableError: 環境変数が未設定でデフォルトもない
    """

    def substitute(match: re.Match[str]) -> str:
        name = match.group("name")
        resolved = os.environ.get(name, match.group("default"))
        if resolved is None:
            raise EnvironmentVariableError(f"Environment variable '{name}' is not set")
        return resolved

    return ENV_VAR_PATTERN.sub(substitute, value)


def _expand(node: Any) -> Any:
    if isinstance(node, str):
        return expand_env_vars(node)
    if isinstance(node, dict):
        return {key: _expand(value) for key, value in node.items()}
    if isinstance(node, list):
        return [_expand(item) for item in node]
    return node


def _section(data: dict[str, Any], name: str, required: bool = False) -> dict[str, Any]:
    """トップレベルのセクションを取り出す

    Raises:
        ConfigValidationError: 必須セクションの欠落、またはマッピングでない
    """
    section = data.get(name)
    if section is None:
        if required:
            raise ConfigValidationError(f"Required field '{name}' is missing")
        return {}
    if not isinstance(section, dict):
        raise ConfigValidationError(f"Section '{name}' must be a mapping")
    return section


def _build(cls: type[T], values: dict[str, Any], path: str) -> T:
    """セクションの dict からデータクラスを組み立てる

    デフォルト値のないフィールドは必須として扱い、未知のキーは拒否する。

    Args:
        cls: 生成するデータクラス
        values: セクションの値
        path: エラーメッセージ用のセクション名

    Raises:
        ConfigValidationError: 必須フィールドの欠落、または未知のキー
    """
    known = {f.name: f for f in fields(cls)}  # type: ignore[arg-type]

    unknown = sorted(set(values) - set(known))
    if unknown:
        raise ConfigValidationError(f"Unknown field '{path}.{unknown[0]}'")

    for name, f in known.items():
        has_default = f.default is not MISSING or f.default_factory is not MISSING
        if not has_default and values.get(name) is None:
            raise ConfigValidationError(f"Required field '{path}.{name}' is missing")

    return cls(**{k: v for k, v in values.items() if v is not None})


def load_config(path: str | Path) -> Config:
    """設定ファイルを読み込む

    Args:
        path: config.yaml のパス

    Returns:
        Config オブジェクト

    Raises:
        FileNotFoundError: ファイルが存在しない
        ConfigValidationError: 必須項目の欠落や不正な値
        EnvironmentVariableError: 環境変数が未設定
        yaml.YAMLError: YAML構文エラー
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    if not isinstance(raw, dict):
        raise ConfigValidationError("Config root must be a mapping")

    data = _expand(raw)
    logging_values = _section(data, "logging")

    config = Config(
        messaging=_build(
            MessagingConfig, _section(data, "messaging", required=True), "messaging"
        ),
        database=_build(
            DatabaseConfig, _section(data, "database", required=True), "database"
        ),
        conversation=_build(
            ConversationConfig, _section(data, "conversation"), "conversation"
        ),
        response=_build(ResponseConfig, _section(data, "response"), "response"),
        insights=_build(InsightConfig, _section(data, "insights"), "insights"),
        server=_build(ServerConfig, _section(data, "server"), "server"),
        logging=(
            _build(LoggingConfig, logging_values, "logging") if logging_values else None
        ),
    )

    if config.conversation.window_size < 1:
        raise ConfigValidationError("conversation.window_size must be positive")
    if not 0.0 < config.response.feedback_decay < 1.0:
        raise ConfigValidationError("response.feedback_decay must be between 0 and 1")

    return config

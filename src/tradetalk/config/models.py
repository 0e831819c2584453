"""設定データクラス"""

from dataclasses import dataclass


@dataclass
class MessagingConfig:
    """WhatsApp (Twilio互換) 送信設定"""

    account_sid: str
    auth_token: str
    from_number: str
    api_base_url: str = "https://api.twilio.com"
    channel_prefix: str = "whatsapp:"
    timeout_seconds: float = 10.0


@dataclass
class DatabaseConfig:
    """永続化設定"""

    database_path: str


@dataclass
class ConversationConfig:
    """会話コンテキスト設定

    Attributes:
        window_size: 保持する直近メッセージ数
        referenced_items_capacity: 直近参照アイテムの最大数
        successful_interactions_capacity: 成功インタラクションの最大数
        persist_interval_seconds: スナップショット保存間隔
        inactive_minutes: この時間操作がないコンテキストをメモリから退避する
    """

    window_size: int = 10
    referenced_items_capacity: int = 5
    successful_interactions_capacity: int = 20
    persist_interval_seconds: int = 300
    inactive_minutes: int = 120


@dataclass
class ResponseConfig:
    """応答生成設定"""

    learning_threshold: float = 0.7
    feedback_decay: float = 0.9


@dataclass
class InsightConfig:
    """プロアクティブインサイト設定"""

    interval_seconds: int = 1800
    min_confidence: float = 0.6
    max_insights: int = 5
    send_delay_seconds: float = 5.0
    active_days: int = 7
    recently_sent_hours: int = 6


@dataclass
class ServerConfig:
    """Webhook HTTP サーバー設定"""

    host: str = "0.0.0.0"
    port: int = 8080


@dataclass
class LoggingConfig:
    """ログ設定"""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    loggers: dict[str, str] | None = None


@dataclass
class Config:
    """アプリケーション設定"""

    messaging: MessagingConfig
    database: DatabaseConfig
    conversation: ConversationConfig
    response: ResponseConfig
    insights: InsightConfig
    server: ServerConfig
    logging: LoggingConfig | None = None

"""Datetime helpers for the persistence layer."""

from datetime import datetime, timezone


def normalize_to_utc(dt: datetime) -> datetime:
    """SQLite から読み出した日時を UTC の aware datetime にする

    SQLite はタイムゾーン情報を保持しないため、naive な値は UTC とみなす。

    Args:
        dt: 変換する日時

    Returns:
        UTC の aware datetime
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def normalize_optional(dt: datetime | None) -> datetime | None:
    return normalize_to_utc(dt) if dt is not None else None

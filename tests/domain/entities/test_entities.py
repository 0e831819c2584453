"""Tests for small entity helpers."""

from datetime import datetime

import pytest

from tradetalk.domain.entities import (
    InsightPriority,
    Intent,
    IntentType,
    InventoryItem,
    Message,
    Persona,
    ResponsePattern,
    TimeOfDay,
    pattern_key,
)


class TestIntent:
    def test_missing_entities(self) -> None:
        intent = Intent(IntentType.CHECK_INVENTORY, 0.9, {})

        assert intent.missing_entities() == ["product"]

    def test_empty_value_counts_as_missing(self) -> None:
        intent = Intent(IntentType.CHECK_SUPPLIER, 0.9, {"supplier_name": ""})

        assert intent.missing_entities() == ["supplier_name"]

    def test_nothing_required(self) -> None:
        intent = Intent(IntentType.VIEW_ALERTS, 0.9, {})

        assert intent.missing_entities() == []

    def test_reorder_runs_without_product(self) -> None:
        intent = Intent(IntentType.REORDER_STOCK, 0.9, {"quantity": 50})

        assert intent.missing_entities() == []

    def test_is_unknown(self) -> None:
        assert Intent(IntentType.UNKNOWN, 0.0).is_unknown
        assert not Intent(IntentType.HELP, 0.9).is_unknown


class TestTimeOfDay:
    @pytest.mark.parametrize(
        ("hour", "expected"),
        [
            (0, TimeOfDay.MORNING),
            (11, TimeOfDay.MORNING),
            (12, TimeOfDay.AFTERNOON),
            (16, TimeOfDay.AFTERNOON),
            (17, TimeOfDay.EVENING),
            (20, TimeOfDay.EVENING),
            (21, TimeOfDay.NIGHT),
            (23, TimeOfDay.NIGHT),
        ],
    )
    def test_from_hour(self, hour: int, expected: TimeOfDay) -> None:
        assert TimeOfDay.from_hour(hour) == expected


class TestInsightPriority:
    def test_urgent_priorities(self) -> None:
        assert InsightPriority.CRITICAL.is_urgent
        assert InsightPriority.HIGH.is_urgent
        assert not InsightPriority.MEDIUM.is_urgent
        assert not InsightPriority.LOW.is_urgent


class TestMessage:
    def test_annotate_returns_copy(self, now: datetime) -> None:
        message = Message("SM1", "+1", "+2", "check stock ABC123", now)

        annotated = message.annotate("check_inventory", {"product": "ABC123"}, 0.9)

        assert annotated.intent == "check_inventory"
        assert annotated.entities == {"product": "ABC123"}
        assert annotated.confidence == 0.9
        assert message.intent is None
        assert message.entities == {}


class TestInventoryItem:
    def test_is_low(self) -> None:
        assert InventoryItem("A", "Widget", quantity=10, reorder_point=10).is_low
        assert not InventoryItem("A", "Widget", quantity=11, reorder_point=10).is_low


class TestResponsePattern:
    def test_key(self) -> None:
        pattern = ResponsePattern(Persona.HUB, "check_inventory", "learned", "x")

        assert pattern.key == ("hub", "check_inventory", "learned")
        assert pattern.key == pattern_key(Persona.HUB, "check_inventory", "learned")

"""
Tests for parsers/status_codec.py and utils/dates.py.

Covers:
- mark_to_status / status_to_mark, including tolerated unknown markers
- expand_shorthand: date keywords, priority keywords, idempotence
- convert_attributes: whole-line shorthand expansion
- resolve_date_keyword: relative words, weekdays, "in N days", ISO passthrough
"""

import sys
from datetime import date
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

import pytest

from taskvault.models.task import Status
from taskvault.parsers.status_codec import (
    convert_attributes,
    expand_shorthand,
    mark_to_status,
    status_to_mark,
)
from taskvault.utils.dates import is_iso_date, resolve_date_keyword

# A Wednesday
TODAY = date(2026, 1, 14)


# ---------------------------------------------------------------------------
# Marker mapping
# ---------------------------------------------------------------------------

class TestMarkToStatus:
    @pytest.mark.parametrize(
        "mark, status",
        [
            (" ", Status.TODO),
            ("x", Status.COMPLETE),
            ("X", Status.COMPLETE),
            (">", Status.IN_PROGRESS),
            ("-", Status.CANCELED),
            ("c", Status.CANCELED),
            ("C", Status.CANCELED),
            ("]", Status.CANCELED),
            ("!", Status.ATTENTION_REQUIRED),
            ("d", Status.DELEGATED),
            ("D", Status.DELEGATED),
        ],
    )
    def test_known_markers(self, mark, status):
        assert mark_to_status(mark) == status

    @pytest.mark.parametrize("mark", ["?", "/", "", None, "z"])
    def test_unknown_markers_default_to_todo(self, mark):
        assert mark_to_status(mark) == Status.TODO

    def test_status_to_mark_representatives(self):
        assert [status_to_mark(s) for s in Status] == ["!", " ", ">", "d", "x", "-"]

    @pytest.mark.parametrize("status", list(Status))
    def test_mark_round_trip(self, status):
        assert mark_to_status(status_to_mark(status)) == status


class TestStatusLabels:
    def test_label(self):
        assert Status.IN_PROGRESS.label == "in-progress"

    @pytest.mark.parametrize("label", ["in-progress", "in_progress", "IN_PROGRESS", " In-Progress "])
    def test_from_label(self, label):
        assert Status.from_label(label) == Status.IN_PROGRESS

    def test_from_label_unknown(self):
        with pytest.raises(ValueError):
            Status.from_label("open")

    def test_closed_statuses(self):
        assert Status.COMPLETE.is_closed
        assert Status.CANCELED.is_closed
        assert not Status.TODO.is_closed


# ---------------------------------------------------------------------------
# Shorthand expansion
# ---------------------------------------------------------------------------

class TestExpandShorthand:
    def test_weekday_becomes_due(self):
        assert expand_shorthand({"friday": True}, today=TODAY) == {"due": "2026-01-16"}

    def test_same_weekday_is_next_week(self):
        assert expand_shorthand({"wednesday": True}, today=TODAY) == {"due": "2026-01-21"}

    def test_tomorrow(self):
        assert expand_shorthand({"tomorrow": True}, today=TODAY) == {"due": "2026-01-15"}

    def test_asap_is_today(self):
        assert expand_shorthand({"asap": True}, today=TODAY) == {"due": "2026-01-14"}

    def test_priority_keyword(self):
        assert expand_shorthand({"high": True}) == {"priority": "high"}

    @pytest.mark.parametrize("keyword", ["critical", "high", "medium", "low", "lowest"])
    def test_all_priority_keywords(self, keyword):
        assert expand_shorthand({keyword: True}) == {"priority": keyword}

    def test_due_value_keyword_resolved(self):
        assert expand_shorthand({"due": "tomorrow"}, today=TODAY) == {"due": "2026-01-15"}

    def test_due_value_iso_kept(self):
        assert expand_shorthand({"due": "2025-03-01"}, today=TODAY) == {"due": "2025-03-01"}

    def test_unrecognised_flag_kept(self):
        assert expand_shorthand({"urgent": True}) == {"urgent": True}

    def test_string_values_not_expanded(self):
        assert expand_shorthand({"friday": "lunch"}, today=TODAY) == {"friday": "lunch"}

    def test_custom_due_attribute(self):
        result = expand_shorthand({"tomorrow": True}, due_attribute="scheduled", today=TODAY)
        assert result == {"scheduled": "2026-01-15"}

    def test_input_not_modified(self):
        attrs = {"friday": True}
        expand_shorthand(attrs, today=TODAY)
        assert attrs == {"friday": True}

    def test_order_preserved(self):
        result = expand_shorthand({"a": "1", "high": True, "b": "2"})
        assert list(result) == ["a", "priority", "b"]

    @pytest.mark.parametrize(
        "attrs",
        [
            {"friday": True, "high": True, "urgent": True},
            {"due": "next monday", "priority": "low"},
            {"owner": "Sam", "in_3_days": True},
            {},
        ],
    )
    def test_idempotent(self, attrs):
        once = expand_shorthand(attrs, today=TODAY)
        assert expand_shorthand(once, today=TODAY) == once


class TestConvertAttributes:
    def test_expands_line(self):
        line = "- [ ] Call mom @tomorrow @high"
        assert convert_attributes(line, today=TODAY) == "- [ ] Call mom [due:: 2026-01-15] [priority:: high]"

    def test_keeps_indentation_and_marker(self):
        line = "  * [>] Ship it @friday #work"
        assert convert_attributes(line, today=TODAY) == "  * [>] Ship it #work [due:: 2026-01-16]"

    def test_edit_applied_after_expansion(self):
        def edit(parts, attrs):
            parts.checkbox = "x"
            attrs.attributes["due"] += "!"

        line = "- [ ] Call mom @tomorrow"
        assert convert_attributes(line, today=TODAY, edit=edit) == "- [x] Call mom [due:: 2026-01-15!]"


# ---------------------------------------------------------------------------
# Date keywords
# ---------------------------------------------------------------------------

class TestResolveDateKeyword:
    @pytest.mark.parametrize(
        "keyword, expected",
        [
            ("today", "2026-01-14"),
            ("now", "2026-01-14"),
            ("tomorrow", "2026-01-15"),
            ("yesterday", "2026-01-13"),
            ("fri", "2026-01-16"),
            ("Monday", "2026-01-19"),
            ("next friday", "2026-01-23"),
            ("next_monday", "2026-01-19"),
            ("in 3 days", "2026-01-17"),
            ("in_2_weeks", "2026-01-28"),
            ("2026-02-15", "2026-02-15"),
        ],
    )
    def test_keywords(self, keyword, expected):
        assert resolve_date_keyword(keyword, TODAY) == expected

    @pytest.mark.parametrize("keyword", ["", "urgent", "someday", "2026-2-5", "in x days"])
    def test_not_a_date(self, keyword):
        assert resolve_date_keyword(keyword, TODAY) is None

    def test_is_iso_date(self):
        assert is_iso_date("2026-01-31")
        assert not is_iso_date("2026-02-31")
        assert not is_iso_date("20260131")

"""
Tests for single-line capture parsing.
"""

from datetime import datetime

import pytest

from founderflow.flow.capture import CaptureParser, SegmentType, parse_capture
from founderflow.utils.clock import to_ms

# Wednesday, mid-morning
NOW = datetime(2026, 3, 4, 10, 0)


@pytest.fixture
def parser():
    return CaptureParser()


def typed(parsed, kind):
    return [s.text for s in parsed.segments if s.type is kind]


class TestTokens:
    """Fixed-syntax tokens."""

    def test_full_capture_line(self, parser):
        parsed = parser.parse("Email @sara about p:Launch due:tomorrow est:30", NOW)

        assert parsed.title == "Email about"
        assert parsed.person_id == "sara"
        assert parsed.project_id == "Launch"
        assert parsed.estimate_minutes == 30
        assert parsed.due_at == to_ms(datetime(2026, 3, 5, 17, 0))
        assert parsed.start_at is None
        assert typed(parsed, SegmentType.DUE) == ["due:tomorrow"]

    def test_plain_text(self, parser):
        parsed = parser.parse("  Buy milk  ", NOW)

        assert parsed.title == "Buy milk"
        assert parsed.project_id is None
        assert parsed.person_id is None
        assert parsed.estimate_minutes is None
        assert parsed.due_at is None
        assert parsed.start_at is None
        assert parsed.priority is None
        assert [s.type for s in parsed.segments] == [SegmentType.TEXT]

    def test_minutes_shorthand(self, parser):
        parsed = parser.parse("Review deck 45m", NOW)
        assert parsed.estimate_minutes == 45
        assert parsed.title == "Review deck"

    def test_zero_estimate_is_claimed_but_unset(self, parser):
        parsed = parser.parse("Think est:0", NOW)
        assert parsed.estimate_minutes is None
        assert typed(parsed, SegmentType.ESTIMATE) == ["est:0"]
        assert parsed.title == "Think"

    def test_priority_is_uppercased(self, parser):
        parsed = parser.parse("Fix login !P1", NOW)
        assert parsed.priority == "P1"
        parsed = parser.parse("Fix login !p0", NOW)
        assert parsed.priority == "P0"

    def test_first_token_of_a_kind_wins(self, parser):
        parsed = parser.parse("Sync p:Alpha p:Beta @ann @bob", NOW)
        assert parsed.project_id == "Alpha"
        assert parsed.person_id == "ann"
        assert parsed.title == "Sync"
        assert typed(parsed, SegmentType.PROJECT) == ["p:Alpha", "p:Beta"]

    def test_task_fields_drop_unset_values(self, parser):
        fields = parser.parse("Call @joe", NOW).task_fields()
        assert fields == {"title": "Call", "person_id": "joe"}


class TestDates:
    """Date phrases and due/start classification."""

    def test_by_weekday_with_time(self, parser):
        parsed = parser.parse("Ship it by friday 3pm", NOW)

        assert parsed.title == "Ship it"
        assert parsed.due_at == to_ms(datetime(2026, 3, 6, 15, 0))
        assert typed(parsed, SegmentType.DUE) == ["by friday 3pm"]

    def test_due_defaults_to_five_pm(self, parser):
        parsed = parser.parse("Send invoice friday", NOW)
        assert parsed.due_at == to_ms(datetime(2026, 3, 6, 17, 0))

    def test_on_means_start_at_nine(self, parser):
        parsed = parser.parse("Call investor on monday", NOW)

        assert parsed.start_at == to_ms(datetime(2026, 3, 9, 9, 0))
        assert parsed.due_at is None
        assert typed(parsed, SegmentType.START) == ["on monday"]
        assert parsed.title == "Call investor"

    def test_start_marker(self, parser):
        parsed = parser.parse("Draft memo start:tomorrow", NOW)
        assert parsed.start_at == to_ms(datetime(2026, 3, 5, 9, 0))
        assert typed(parsed, SegmentType.START) == ["start:tomorrow"]

    def test_due_marker_with_following_time(self, parser):
        parsed = parser.parse("Board prep due:friday 10am", NOW)
        assert parsed.due_at == to_ms(datetime(2026, 3, 6, 10, 0))
        assert typed(parsed, SegmentType.DUE) == ["due:friday 10am"]
        assert parsed.title == "Board prep"

    def test_unreadable_marker_value(self, parser):
        parsed = parser.parse("Plan offsite due:someday", NOW)
        assert parsed.due_at is None
        assert typed(parsed, SegmentType.DUE) == ["due:someday"]
        assert parsed.title == "Plan offsite"

    def test_bare_time_is_due(self, parser):
        parsed = parser.parse("Call bank at 3pm", NOW)
        assert parsed.due_at == to_ms(datetime(2026, 3, 4, 15, 0))
        assert parsed.title == "Call bank"

    def test_start_and_due_together(self, parser):
        parsed = parser.parse("Hiring plan s:monday by friday", NOW)
        assert parsed.start_at == to_ms(datetime(2026, 3, 9, 9, 0))
        assert parsed.due_at == to_ms(datetime(2026, 3, 6, 17, 0))
        assert parsed.title == "Hiring plan"

    def test_start_hint_outranks_the_absorbed_literal(self, parser):
        parsed = parser.parse("Call on by friday", NOW)
        assert parsed.start_at == to_ms(datetime(2026, 3, 6, 9, 0))
        assert parsed.due_at is None
        assert typed(parsed, SegmentType.START) == ["by friday"]
        assert parsed.title == "Call on"

    def test_extra_date_is_dropped(self, parser):
        parsed = parser.parse("Prep deck friday then monday", NOW)
        assert parsed.due_at == to_ms(datetime(2026, 3, 6, 17, 0))
        assert parsed.start_at is None
        assert parsed.title == "Prep deck then"

    def test_dates_inside_tokens_are_ignored(self, parser):
        parsed = parser.parse("Ping p:friday team", NOW)
        assert parsed.project_id == "friday"
        assert parsed.due_at is None


class TestSegments:
    @pytest.mark.parametrize(
        "text",
        [
            "Email @sara about p:Launch due:tomorrow est:30",
            "Ship it by friday 3pm",
            "  spaced   out  ",
            "Hiring plan s:monday by friday !p2 45m",
            "",
        ],
    )
    def test_segments_rebuild_the_input(self, parser, text):
        parsed = parser.parse(text, NOW)
        assert "".join(s.text for s in parsed.segments) == text

    @pytest.mark.parametrize(
        "text",
        [
            "Plan in 99999999 days",
            "Plan in 999999999999 minutes",
            "Plan in 9999999 weeks",
        ],
    )
    def test_out_of_range_offsets_stay_text(self, parser, text):
        parsed = parser.parse(text, NOW)
        assert parsed.due_at is None
        assert parsed.start_at is None
        assert parsed.title == text
        assert "".join(s.text for s in parsed.segments) == text

    def test_segments_are_ordered_and_typed(self, parser):
        parsed = parser.parse("Email @sara p:Launch", NOW)
        assert [(s.text, s.type) for s in parsed.segments] == [
            ("Email ", SegmentType.TEXT),
            ("@sara", SegmentType.PERSON),
            (" ", SegmentType.TEXT),
            ("p:Launch", SegmentType.PROJECT),
        ]

    def test_title_falls_back_to_input(self, parser):
        parsed = parser.parse("@sara", NOW)
        assert parsed.title == "@sara"
        assert parsed.person_id == "sara"


def test_module_helper():
    parsed = parse_capture("Ship it by friday", NOW)
    assert parsed.title == "Ship it"

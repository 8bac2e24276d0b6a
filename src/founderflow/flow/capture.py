"""
Capture Parser

Turns one typed line into a structured task. Fixed tokens (p:Project,
@person, est:30, 45m, !p1, due:/start: markers) are claimed first; the
remaining free text is scanned for date phrases. Every claimed span is
kept so the input can be rebuilt and highlighted exactly.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from founderflow.flow.dates import DateExtractor, DateMatch
from founderflow.utils.clock import to_ms
from founderflow.utils.logging import get_logger

logger = get_logger(__name__)

DUE_DEFAULT_HOUR = 17
START_DEFAULT_HOUR = 9

# How far back to look for a due/start hint before a date phrase
HINT_WINDOW = 6


class SegmentType(Enum):
    """What a span of the input was claimed as."""
    TEXT = "text"
    PROJECT = "project"
    PERSON = "person"
    ESTIMATE = "estimate"
    PRIORITY = "priority"
    DUE = "due"
    START = "start"


@dataclass(frozen=True)
class Segment:
    text: str
    type: SegmentType


@dataclass
class ParsedCapture:
    """Result of parsing a capture line. Timestamps are epoch ms."""
    title: str
    project_id: Optional[str] = None
    person_id: Optional[str] = None
    estimate_minutes: Optional[int] = None
    due_at: Optional[int] = None
    start_at: Optional[int] = None
    priority: Optional[str] = None
    segments: list[Segment] = field(default_factory=list)

    def task_fields(self) -> dict:
        """Non-empty fields, keyed for TaskLifecycle.add_task."""
        fields = {
            "title": self.title,
            "project_id": self.project_id,
            "person_id": self.person_id,
            "estimate_minutes": self.estimate_minutes,
            "due_at": self.due_at,
            "start_at": self.start_at,
            "priority": self.priority,
        }
        return {k: v for k, v in fields.items() if v is not None}


@dataclass
class Span:
    """
    A claimed half-open range [start, end).

    value_start is set only on due:/start: markers whose value has not been
    resolved to a date yet; the date scanner still sees [value_start, end).
    """
    start: int
    end: int
    type: SegmentType
    value_start: Optional[int] = None

    def intersects(self, start: int, end: int) -> bool:
        return start < self.end and end > self.start


class SpanSet:
    """Disjoint, typed, claimed ranges over one input string."""

    def __init__(self) -> None:
        self._spans: list[Span] = []

    def __iter__(self):
        return iter(sorted(self._spans, key=lambda s: s.start))

    def overlaps(self, start: int, end: int, ignore: Optional[Span] = None) -> bool:
        return any(s.intersects(start, end) for s in self._spans if s is not ignore)

    def claim(self, span: Span) -> bool:
        """Add a span unless it intersects an existing claim."""
        if self.overlaps(span.start, span.end):
            return False
        self._spans.append(span)
        return True

    def replace(self, old: Span, new: Span) -> None:
        self._spans[self._spans.index(old)] = new

    def marker_at(self, offset: int) -> Optional[Span]:
        """The unresolved due:/start: marker whose value contains offset."""
        for span in self._spans:
            if span.value_start is not None and span.value_start <= offset < span.end:
                return span
        return None

    def masked(self, text: str) -> str:
        """Copy of text with claimed characters blanked out."""
        chars = list(text)
        for span in self._spans:
            hidden_end = span.value_start if span.value_start is not None else span.end
            for i in range(span.start, hidden_end):
                chars[i] = " "
        return "".join(chars)

    def segments(self, text: str) -> list[Segment]:
        """Cover text with plain and claimed segments, in order."""
        segments: list[Segment] = []
        cursor = 0
        for span in self:
            if span.start > cursor:
                segments.append(Segment(text[cursor:span.start], SegmentType.TEXT))
            segments.append(Segment(text[span.start:span.end], span.type))
            cursor = span.end
        if cursor < len(text):
            segments.append(Segment(text[cursor:], SegmentType.TEXT))
        return segments


class CaptureParser:
    """
    Parser for single-line task capture.

    Token rules run in order; a match that touches an earlier claim is
    ignored. Date phrases are read last, from whatever text is left.
    """

    # Order matters! Earlier rules win overlapping text.
    TOKEN_RULES = [
        (r"\bp:(\w+)", SegmentType.PROJECT),
        (r"@(\w+)", SegmentType.PERSON),
        (r"\best:(\d+)", SegmentType.ESTIMATE),
        (r"\b(\d+)m\b", SegmentType.ESTIMATE),
        (r"!(p[0-3])", SegmentType.PRIORITY),
        (r"\bdue:(\S+)", SegmentType.DUE),
        (r"\bstart:(\S+)", SegmentType.START),
    ]

    # Literals absorbed into a date segment; they do not change its type
    DATE_PREFIXES = ("start:", "due:", "by ", "s:", "on ")
    START_HINT = re.compile(r"start:|s:|on ")

    def __init__(self, extractor: Optional[DateExtractor] = None):
        self._rules = [
            (re.compile(p, re.IGNORECASE if kind is SegmentType.PRIORITY else 0), kind)
            for p, kind in self.TOKEN_RULES
        ]
        self._dates = extractor or DateExtractor()

    def parse(self, text: str, now: Optional[datetime] = None) -> ParsedCapture:
        """
        Parse a capture line.

        Args:
            text: What the user typed
            now: Reference time for relative dates (defaults to the local clock)

        Returns:
            ParsedCapture; fields without a matching token stay None
        """
        now = now or datetime.now()
        spans = SpanSet()
        result = ParsedCapture(title=text)

        for pattern, kind in self._rules:
            for match in pattern.finditer(text):
                marker = kind in (SegmentType.DUE, SegmentType.START)
                span = Span(
                    match.start(),
                    match.end(),
                    kind,
                    value_start=match.start(1) if marker else None,
                )
                if spans.claim(span) and not marker:
                    self._assign_token(result, kind, match.group(1))

        masked = spans.masked(text)
        for found in self._dates.iter_matches(masked, now):
            self._claim_date(text, spans, result, found)

        result.segments = spans.segments(text)
        title = " ".join(s.text for s in result.segments if s.type is SegmentType.TEXT)
        result.title = " ".join(title.split()) or text

        logger.debug(
            "capture_parsed",
            title=result.title,
            segments=len(result.segments),
            due_at=result.due_at,
            start_at=result.start_at,
        )
        return result

    def _assign_token(self, result: ParsedCapture, kind: SegmentType, value: str) -> None:
        """First accepted token of a kind fills the field; later ones only claim text."""
        if kind is SegmentType.PROJECT and result.project_id is None:
            result.project_id = value
        elif kind is SegmentType.PERSON and result.person_id is None:
            result.person_id = value
        elif kind is SegmentType.ESTIMATE and result.estimate_minutes is None:
            minutes = int(value)
            if minutes > 0:
                result.estimate_minutes = minutes
        elif kind is SegmentType.PRIORITY and result.priority is None:
            result.priority = value.upper()

    def _claim_date(
        self, text: str, spans: SpanSet, result: ParsedCapture, found: DateMatch
    ) -> None:
        marker = spans.marker_at(found.start)
        if marker is not None:
            kind = marker.type
            span = Span(marker.start, max(found.end, marker.end), kind)
            if spans.overlaps(span.start, span.end, ignore=marker):
                return
            spans.replace(marker, span)
        else:
            kind, start = self._classify(text, found.start)
            span = Span(start, found.end, kind)
            if not spans.claim(span):
                return

        value = found.value
        if not found.has_time:
            hour = START_DEFAULT_HOUR if kind is SegmentType.START else DUE_DEFAULT_HOUR
            value = value.replace(hour=hour, minute=0, second=0, microsecond=0)
        stamp = to_ms(value)

        if kind is SegmentType.DUE and result.due_at is None:
            result.due_at = stamp
        elif kind is SegmentType.START and result.start_at is None:
            result.start_at = stamp
        elif result.due_at is None:
            result.due_at = stamp

    def _classify(self, text: str, start: int) -> tuple[SegmentType, int]:
        """Decide due vs start from the text just before a date phrase."""
        window = text[max(0, start - HINT_WINDOW):start].lower()
        kind = SegmentType.START if self.START_HINT.search(window) else SegmentType.DUE

        before = text[:start].lower()
        for literal in self.DATE_PREFIXES:
            if before.endswith(literal):
                return kind, start - len(literal)
        return kind, start


_parser: Optional[CaptureParser] = None


def get_capture_parser() -> CaptureParser:
    """Get or create the capture parser singleton."""
    global _parser
    if _parser is None:
        _parser = CaptureParser()
    return _parser


def parse_capture(text: str, now: Optional[datetime] = None) -> ParsedCapture:
    """Convenience function to parse a capture line."""
    return get_capture_parser().parse(text, now)

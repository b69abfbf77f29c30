"""
Turn colloquial (Indonesian or English) time phrases into absolute datetimes.

Two modes:

* ``natural`` – chat input such as ``"besok jam 9 pagi"``. Explicit clock times
  and parts of the day (``sore``, ``nanti malam``) prefer today and roll to
  tomorrow once passed, unless the user said "hari ini"/"today", in which
  case a `TimePassedToday` is returned so the caller can ask before shifting.
* ``custom`` – typed stamps for report fields. A string shaped like
  ``YYYY-MM-DD HH:mm`` must be a real date; anything else gets the same clock
  and part-of-day reading without the forward bias, then a whole-phrase parse.

Everything here is pure: the reference time is always passed in.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Literal, Optional, Union

import dateparser
from dateparser.search import search_dates

_LOGGER = logging.getLogger(__name__)

ResolveMode = Literal["natural", "custom"]

_CLOCK_RE = re.compile(
    r"\b(?:pukul|jam|at)\s*(\d{1,2})(?:[:.](\d{2}))?\s*"
    r"(pagi|siang|sore|malam|morning|noon|afternoon|evening|night|am|pm)?\b",
    re.IGNORECASE,
)
_TODAY_RE = re.compile(r"\b(?:hari ini|today)\b", re.IGNORECASE)
_NEXT_DAY_RE = re.compile(
    r"\b(?:tomorrow|besok|lusa|minggu depan|next week)\b", re.IGNORECASE
)
_DAY_OFFSET_RE = re.compile(
    r"\b(day after tomorrow|lusa|besok|tomorrow|minggu depan|next week)\b", re.IGNORECASE
)
_DAY_PART_RE = re.compile(r"\b(tonight|morning|noon|afternoon|evening)\b")
# A parse is only trusted when the phrase carries a digit or a day word.
_ANCHOR_RE = re.compile(
    r"\d|\b(?:now|today|tonight|tomorrow|yesterday|week|month|year|"
    r"monday|tuesday|wednesday|thursday|friday|saturday|sunday|"
    r"sekarang|besok|lusa|kemarin|minggu|bulan|tahun|"
    r"senin|selasa|rabu|kamis|jumat|sabtu)\b",
    re.IGNORECASE,
)
_STRICT_RE = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}$")

_MERIDIEM_ALIASES = {
    "pagi": "morning",
    "siang": "noon",
    "sore": "afternoon",
    "malam": "evening",
    "night": "evening",
}

_DAY_PARTS = {"morning": 6, "noon": 12, "afternoon": 15, "evening": 18, "tonight": 22}

# Order matters: multi-word phrases before their single-word parts.
_NORMALISATION = (
    (r"\bbesok\b", "tomorrow"),
    (r"\blusa\b", "day after tomorrow"),
    (r"\bnanti malam\b", "tonight"),
    (r"\bpagi\b", "morning"),
    (r"\bsiang\b", "noon"),
    (r"\bsore\b", "afternoon"),
    (r"\bmalam\b", "evening"),
    (r"\bminggu depan\b", "next week"),
    (r"\bhari ini\b", "today"),
    (r"\bsebentar\b", "later"),
    (r"\bnanti\b", "later"),
)

_LANGUAGES = ["en", "id"]


class UnrecognizedTime(ValueError):
    """No usable time could be read from the phrase."""

    code = "unrecognized_time"

    def __init__(self, phrase: str):
        super().__init__(f"unrecognized time expression: {phrase!r}")
        self.phrase = phrase


@dataclass(frozen=True)
class TimePassedToday:
    """The user asked for a time *today* that is already behind us."""

    candidate: datetime
    code: str = "time_passed_today"


Resolution = Union[datetime, TimePassedToday]


# ──────────────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────────────

def to_24h(hour: int, meridiem: Optional[str]) -> int:
    """Apply a meridiem token (canonical or Indonesian) to a clock hour."""
    if not meridiem:
        return hour
    meridiem = _MERIDIEM_ALIASES.get(meridiem.lower(), meridiem.lower())
    if meridiem == "morning" and hour == 12:
        return 0
    if meridiem in ("noon", "afternoon", "evening") and hour < 12:
        return hour + 12
    if meridiem == "pm" and hour < 12:
        return hour + 12
    if meridiem == "am" and hour == 12:
        return 0
    return hour


def normalize_phrase(text: str) -> str:
    """Map Indonesian relative-day and time-of-day words to English tokens."""
    t = str(text or "").lower()
    for pattern, repl in _NORMALISATION:
        t = re.sub(pattern, repl, t)
    t = re.sub(
        r"\b(?:pukul|jam)\s*(\d{1,2})(?:[:.](\d{2}))?",
        lambda m: f"at {m.group(1)}" + (f":{m.group(2)}" if m.group(2) else ""),
        t,
    )
    return re.sub(r"\s+", " ", t).strip()


def _day_offset(text: str) -> int:
    m = _DAY_OFFSET_RE.search(text)
    if not m:
        return 0
    word = m.group(1).lower()
    if word in ("minggu depan", "next week"):
        return 7
    return 2 if word in ("lusa", "day after tomorrow") else 1


def _parser_settings(now: datetime, tz: tzinfo, forward: bool) -> dict:
    settings = {
        "RELATIVE_BASE": now.astimezone(tz).replace(tzinfo=None),
        "TIMEZONE": str(tz),
        "RETURN_AS_TIMEZONE_AWARE": True,
    }
    if forward:
        settings["PREFER_DATES_FROM"] = "future"
    return settings


def _natural_parse(
    text: str, now: datetime, tz: tzinfo, forward: bool, search: bool = True
) -> Optional[datetime]:
    """Whole-phrase parse first, then (if *search*) a date embedded in a sentence."""
    if not text.strip() or not _ANCHOR_RE.search(text):
        return None
    settings = _parser_settings(now, tz, forward)
    dt = dateparser.parse(text, languages=_LANGUAGES, settings=settings)
    if dt is None and search:
        found = search_dates(text, languages=_LANGUAGES, settings=settings) or []
        # a bare keyword such as "jam" is not a date on its own
        dt = next((hit for fragment, hit in found if _ANCHOR_RE.search(fragment)), None)
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


# ──────────────────────────────────────────────────────────────────────────
# Public API
# ──────────────────────────────────────────────────────────────────────────

def parse_clock_time(text: str, now: datetime, tz: tzinfo) -> Optional[datetime]:
    """Candidate for an explicit ``jam``/``pukul``/``at`` clock time, or None.

    The candidate sits on today's date unless the phrase names another day
    (``besok``, ``lusa``, ``minggu depan``). Raises `UnrecognizedTime` for
    impossible clock values such as ``jam 25``.
    """
    m = _CLOCK_RE.search(text)
    if not m:
        return None
    hour = int(m.group(1))
    minute = int(m.group(2)) if m.group(2) else 0
    if hour > 23 or minute > 59:
        raise UnrecognizedTime(text)
    hour = to_24h(hour, m.group(3))
    base = now.astimezone(tz) + timedelta(days=_day_offset(text))
    return base.replace(hour=hour, minute=minute, second=0, microsecond=0)


def parse_day_part(text: str, now: datetime, tz: tzinfo) -> Optional[datetime]:
    """Candidate for a part of the day with no clock time (``besok sore``), or None.

    Morning is 06:00, noon 12:00, afternoon 15:00, evening 18:00 and
    ``nanti malam``/``tonight`` 22:00, on the day the phrase names.
    """
    t = normalize_phrase(text)
    m = _DAY_PART_RE.search(t)
    if not m:
        return None
    base = now.astimezone(tz) + timedelta(days=_day_offset(t))
    return base.replace(hour=_DAY_PARTS[m.group(1)], minute=0, second=0, microsecond=0)


def parse_prefer_today(text: str, now: datetime, tz: tzinfo) -> Resolution:
    candidate = parse_clock_time(text, now, tz)
    if candidate is None:
        candidate = parse_day_part(text, now, tz)
    if candidate is not None:
        if candidate > now:
            return candidate
        if _TODAY_RE.search(text):
            return TimePassedToday(candidate=candidate)
        return candidate + timedelta(days=1)

    parsed = _natural_parse(normalize_phrase(text), now, tz, forward=True)
    if parsed is not None:
        if parsed < now and not _NEXT_DAY_RE.search(text):
            parsed += timedelta(days=1)
        return parsed

    parsed = _natural_parse(text, now, tz, forward=True)
    if parsed is not None:
        return parsed
    raise UnrecognizedTime(text)


def parse_custom_timestamp(text: str, now: datetime, tz: tzinfo) -> datetime:
    s = text.strip()
    if _STRICT_RE.match(s):
        try:
            return datetime.strptime(s, "%Y-%m-%d %H:%M").replace(tzinfo=tz)
        except ValueError:
            raise UnrecognizedTime(text) from None

    candidate = parse_clock_time(s, now, tz) or parse_day_part(s, now, tz)
    if candidate is not None:
        return candidate
    parsed = (
        _natural_parse(normalize_phrase(s), now, tz, forward=False, search=False)
        or _natural_parse(s, now, tz, forward=False, search=False)
    )
    if parsed is None:
        _LOGGER.debug("No timestamp in %r", s)
        raise UnrecognizedTime(text)
    return parsed


def resolve(phrase: str, now: datetime, tz: tzinfo, mode: ResolveMode = "natural") -> Resolution:
    """Resolve *phrase* against *now* in zone *tz*.

    Returns an aware datetime or, in natural mode only, a `TimePassedToday`.
    Raises `UnrecognizedTime` when nothing can be made of the phrase.
    """
    if mode == "custom":
        return parse_custom_timestamp(phrase, now, tz)
    return parse_prefer_today(phrase, now, tz)


def preset_datetime(tag: str, now: datetime, tz: tzinfo) -> Optional[datetime]:
    """Absolute time for a preset button, relative to the moment it was pressed."""
    local = now.astimezone(tz)
    if tag == "now":
        return local
    if tag == "today_08":
        return local.replace(hour=8, minute=0, second=0, microsecond=0)
    if tag == "today_13":
        return local.replace(hour=13, minute=0, second=0, microsecond=0)
    if tag == "tomorrow_08":
        return (local + timedelta(days=1)).replace(hour=8, minute=0, second=0, microsecond=0)
    return None

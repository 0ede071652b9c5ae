"""
Query filters built from request parameters.

Every parameter is optional.  A missing parameter leaves its field
unconstrained, and the predicates that are present are combined with AND
(one key per field in the resulting MongoDB filter).
"""
from datetime import datetime
import math
from typing import Any, Dict, Optional, Union

from database import to_utc_naive

Number = Union[int, float]


class FilterError(ValueError):
    """A query parameter could not be turned into a predicate."""


def parse_date(value: str, name: str) -> datetime:
    """Parse ``YYYY-MM-DD`` or a full ISO 8601 timestamp into naive UTC."""
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise FilterError(f"{name} must be a date, got {value!r}")
    return to_utc_naive(parsed)


def parse_number(value: Optional[str], name: str) -> Optional[Number]:
    """Parse a numeric query value.  Blank means no bound."""
    if value is None or not value.strip():
        return None
    try:
        parsed = float(value)
    except ValueError:
        raise FilterError(f"{name} must be a number, got {value!r}")
    if not math.isfinite(parsed):
        raise FilterError(f"{name} must be a number, got {value!r}")
    return int(parsed) if parsed.is_integer() else parsed


def range_predicate(lower: Any = None, upper: Any = None) -> Optional[Dict[str, Any]]:
    """Inclusive range; either bound may be omitted.  None when both are."""
    predicate: Dict[str, Any] = {}
    if lower is not None:
        predicate["$gte"] = lower
    if upper is not None:
        predicate["$lte"] = upper
    return predicate or None


def build_challenge_filter(
    category: Optional[str] = None,
    min_participants: Optional[str] = None,
    max_participants: Optional[str] = None,
    start_from: Optional[str] = None,
    start_to: Optional[str] = None,
) -> Dict[str, Any]:
    """Build the filter for the challenge listing.

    ``category`` is a comma separated list matched by set membership,
    participants and startDate are inclusive ranges.  Raises
    ``FilterError`` for an unparseable number or date.
    """
    q: Dict[str, Any] = {}

    if category:
        q["category"] = {"$in": category.split(",")}

    participants = range_predicate(
        parse_number(min_participants, "minParticipants"),
        parse_number(max_participants, "maxParticipants"),
    )
    if participants:
        q["participants"] = participants

    start_date = range_predicate(
        parse_date(start_from, "startFrom") if start_from else None,
        parse_date(start_to, "startTo") if start_to else None,
    )
    if start_date:
        q["startDate"] = start_date

    return q


def build_user_challenge_filter(user_id: Optional[str] = None) -> Dict[str, Any]:
    q: Dict[str, Any] = {}
    if user_id:
        q["userId"] = user_id
    return q


def build_upcoming_events_filter(now: datetime) -> Dict[str, Any]:
    return {"date": {"$gte": to_utc_naive(now)}}

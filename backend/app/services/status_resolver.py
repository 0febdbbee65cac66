"""
Status Priority Resolver

Maps a multiset of child statuses to one aggregate status. Pure function,
no database access.
"""
from typing import Iterable, Sequence

from app.core.status_config import (
    DEFAULT_AGGREGATE_STATUS,
    UNIT_STATUS_PRIORITY,
    StatusCode,
    parse_status,
)
from app.exceptions import ValidationError


def resolve(
    statuses: Iterable[str],
    priority: Sequence[StatusCode] = UNIT_STATUS_PRIORITY,
    default: StatusCode = DEFAULT_AGGREGATE_STATUS,
) -> StatusCode:
    """
    Aggregate child statuses into one.

    Args:
        statuses: Child status values (StatusCode or raw strings)
        priority: Ordered list, first match wins when statuses differ
        default: Returned for an empty input

    Returns:
        The aggregate StatusCode

    Raises:
        ValidationError: If a status value is unknown
    """
    codes = []
    for value in statuses:
        code = parse_status(value)
        if code is None:
            raise ValidationError(f"Unknown status '{value}'", field="status", value=value)
        codes.append(code)

    if not codes:
        return default

    present = set(codes)
    if len(present) == 1:
        return codes[0]

    for candidate in priority:
        if candidate in present:
            return candidate

    # Priority lists cover every StatusCode, only reachable with a partial list
    return default

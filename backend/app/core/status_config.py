"""Status Configuration and Transition Rules

This module defines the production status codes shared by units, batch
items, batches, order items and orders, the two aggregation priority lists
and the precondition table for scan-driven unit transitions.

Priority lists are explicit ordered constants. Never derive ordering from
the enum declaration order.
"""
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple


# =============================================================================
# Status Codes
# =============================================================================

class StatusCode(str, Enum):
    """Valid status values for every entity in the production chain"""
    PENDING = "PENDING"
    WAITING_BATCH = "WAITING_BATCH"
    BATCHED = "BATCHED"
    DESIGNING = "DESIGNING"
    DESIGNED = "DESIGNED"
    PRINTING = "PRINTING"
    PRINTED = "PRINTED"
    CUTTING = "CUTTING"
    CUT = "CUT"
    FULFILLMENT = "FULFILLMENT"
    PACKED = "PACKED"
    FULFILLED = "FULFILLED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"


class ReplacementReason(str, Enum):
    """Why a unit was pulled from production and replaced"""
    REDESIGN = "REDESIGN"
    REPRINT = "REPRINT"


# Linear production pipeline. Side states (CANCELLED, RETURNED) are not part of it.
PIPELINE: Tuple[StatusCode, ...] = (
    StatusCode.PENDING,
    StatusCode.WAITING_BATCH,
    StatusCode.BATCHED,
    StatusCode.DESIGNING,
    StatusCode.DESIGNED,
    StatusCode.PRINTING,
    StatusCode.PRINTED,
    StatusCode.CUTTING,
    StatusCode.CUT,
    StatusCode.FULFILLMENT,
    StatusCode.PACKED,
    StatusCode.FULFILLED,
    StatusCode.COMPLETED,
)

_PIPELINE_INDEX: Dict[StatusCode, int] = {status: i for i, status in enumerate(PIPELINE)}


# =============================================================================
# Aggregation Priority Lists
# =============================================================================

# Unit -> BatchItem -> OrderItem: most advanced stage wins
UNIT_STATUS_PRIORITY: Tuple[StatusCode, ...] = (
    StatusCode.COMPLETED,
    StatusCode.FULFILLED,
    StatusCode.PACKED,
    StatusCode.FULFILLMENT,
    StatusCode.CUT,
    StatusCode.CUTTING,
    StatusCode.PRINTED,
    StatusCode.PRINTING,
    StatusCode.DESIGNED,
    StatusCode.DESIGNING,
    StatusCode.BATCHED,
    StatusCode.WAITING_BATCH,
    StatusCode.PENDING,
    StatusCode.RETURNED,
    StatusCode.CANCELLED,
)

# OrderItem -> Order: the order is as unfinished as its least finished item
ORDER_STATUS_PRIORITY: Tuple[StatusCode, ...] = (
    StatusCode.PENDING,
    StatusCode.WAITING_BATCH,
    StatusCode.BATCHED,
    StatusCode.DESIGNING,
    StatusCode.DESIGNED,
    StatusCode.PRINTING,
    StatusCode.PRINTED,
    StatusCode.CUTTING,
    StatusCode.CUT,
    StatusCode.FULFILLMENT,
    StatusCode.PACKED,
    StatusCode.FULFILLED,
    StatusCode.COMPLETED,
    StatusCode.RETURNED,
    StatusCode.CANCELLED,
)

DEFAULT_AGGREGATE_STATUS = StatusCode.WAITING_BATCH


# =============================================================================
# Batch Auto-status
# =============================================================================

# The auto-status engine never overrides a batch outside these states
AUTO_MANAGED_BATCH_STATUSES: FrozenSet[StatusCode] = frozenset({
    StatusCode.PENDING,
    StatusCode.WAITING_BATCH,
    StatusCode.BATCHED,
    StatusCode.DESIGNING,
})

# Replacement units may only land in a batch that has not started production
OPEN_BATCH_STATUSES: Tuple[StatusCode, ...] = (
    StatusCode.PENDING,
    StatusCode.WAITING_BATCH,
)


# =============================================================================
# Order Terminal States
# =============================================================================

TERMINAL_ORDER_STATUSES: FrozenSet[StatusCode] = frozenset({
    StatusCode.FULFILLED,
    StatusCode.CANCELLED,
    StatusCode.RETURNED,
})


# =============================================================================
# Unit Scan Transitions
# =============================================================================

# target status -> statuses the unit must currently be in
SCAN_TRANSITIONS: Dict[StatusCode, FrozenSet[StatusCode]] = {
    StatusCode.DESIGNING: frozenset({StatusCode.BATCHED}),
    StatusCode.DESIGNED: frozenset({StatusCode.BATCHED, StatusCode.DESIGNING}),
    StatusCode.PRINTING: frozenset({StatusCode.DESIGNED}),
    StatusCode.PRINTED: frozenset({StatusCode.PRINTING}),
    StatusCode.CUTTING: frozenset({StatusCode.PRINTED}),
    StatusCode.CUT: frozenset({StatusCode.PRINTED, StatusCode.CUTTING}),
    StatusCode.FULFILLMENT: frozenset({StatusCode.CUT}),
    StatusCode.PACKED: frozenset({StatusCode.CUT, StatusCode.FULFILLMENT}),
    StatusCode.FULFILLED: frozenset({StatusCode.PACKED}),
    StatusCode.COMPLETED: frozenset({StatusCode.FULFILLED}),
    StatusCode.RETURNED: frozenset({StatusCode.FULFILLED, StatusCode.COMPLETED}),
}

# Scan station name -> target status
SCAN_STAGES: Dict[str, StatusCode] = {
    "designer": StatusCode.DESIGNED,
    "printer": StatusCode.PRINTED,
    "cutter": StatusCode.CUT,
    "fulfillment": StatusCode.PACKED,
    "shipping": StatusCode.FULFILLED,
}


def parse_status(value: str) -> Optional[StatusCode]:
    """Return the StatusCode for a raw value, or None if unknown"""
    try:
        return StatusCode(str(value).upper())
    except ValueError:
        return None


def pipeline_index(status: str) -> Optional[int]:
    """Position in the production pipeline, None for side states"""
    code = parse_status(status)
    if code is None:
        return None
    return _PIPELINE_INDEX.get(code)


def get_allowed_scan_sources(target: str) -> List[str]:
    """Get list of statuses a unit may be in to be scanned into target"""
    code = parse_status(target)
    return sorted(s.value for s in SCAN_TRANSITIONS.get(code, frozenset()))


def is_already_done(current: str, target: str) -> bool:
    """True when a unit is at or past the target stage (duplicate scan)"""
    if current == target:
        return True
    current_idx = pipeline_index(current)
    target_idx = pipeline_index(target)
    if current_idx is None or target_idx is None:
        return False
    return current_idx > target_idx


def is_valid_scan_transition(current: str, target: str) -> bool:
    """Check if a scan-driven unit transition is valid"""
    code = parse_status(target)
    if code is None:
        return False
    return parse_status(current) in SCAN_TRANSITIONS.get(code, frozenset())

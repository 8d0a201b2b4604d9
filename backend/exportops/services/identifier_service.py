# Overview: Identifier and token generation for lots, orders, lines and assignments.

from __future__ import annotations

import re
import secrets
from typing import Iterable


ASSIGNMENT_PREFIX = "ASG"
ASSIGNMENT_PAD = 4

_SEQUENCE_RE = re.compile(r"^[A-Z]+-(\d+)$")


def _random_suffix(nbytes: int = 5) -> str:
    return secrets.token_hex(nbytes)


def new_lot_id() -> str:
    return f"lot-{_random_suffix()}"


def new_line_id() -> str:
    return f"line-{_random_suffix()}"


def new_demand_id() -> str:
    return f"DEM-{_random_suffix(4).upper()}"


def new_tracking_token() -> str:
    """Public, unguessable token used in /track/<token> links."""
    return secrets.token_urlsafe(12)


def new_order_tracking_token() -> str:
    return f"order-{_random_suffix(6)}"


def next_sequence_number(
    existing_ids: Iterable[str],
    *,
    prefix: str = ASSIGNMENT_PREFIX,
    pad: int = ASSIGNMENT_PAD,
) -> str:
    """
    Allocate the next sequential-looking identifier (ASG-0001, ASG-0002, ...).

    The next number is max(existing) + 1, never len(existing) + 1.
    """
    highest = 0
    for existing in existing_ids:
        match = _SEQUENCE_RE.match(existing or "")
        if match and existing.startswith(f"{prefix}-"):
            highest = max(highest, int(match.group(1)))
    return f"{prefix}-{highest + 1:0{pad}d}"

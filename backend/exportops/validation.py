from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .errors import ValidationError
from .time_utils import parse_iso_date


# Upper bound for any case count; keeps typos like 1e9 out of the ledger
MAX_CASES = 1_000_000



@dataclass(frozen=True)
class FieldPolicy:
    """
    Central policy layer for JSON payloads:
    - fields: field name -> declared type ("str", "int", "float", "bool", "date", "list")
    - required_on_create: fields required for POST
    - max_lengths: optional max length per string field
    """
    fields: dict[str, str]
    required_on_create: set[str] = field(default_factory=set)
    max_lengths: dict[str, int] = field(default_factory=dict)

    @property
    def writable_fields(self) -> set[str]:
        return set(self.fields)


def coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(key: str, kind: str, value: Any):
    if value is None:
        return None

    if kind == "int":
        return coerce_int(key, value)

    if kind == "float":
        if isinstance(value, bool):
            raise ValidationError(f"{key} must be a number")
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                raise ValidationError(f"{key} must be a number")
        raise ValidationError(f"{key} must be a number")

    if kind == "bool":
        if isinstance(value, bool):
            return value
        # fallback: truthiness
        return bool(value)

    if kind == "date":
        try:
            parsed = parse_iso_date(value)
        except ValueError:
            raise ValidationError(f"{key} must be an ISO-8601 date")
        return parsed.isoformat() if parsed else ""

    if kind == "list":
        if not isinstance(value, list):
            raise ValidationError(f"{key} must be a list")
        return value

    # Strings
    return str(value).strip()


def validate_payload(*, payload: Any, policy: FieldPolicy, partial: bool) -> dict:
    """
    Validates + normalizes incoming JSON against a FieldPolicy.
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    for k in payload.keys():
        if k not in policy.fields:
            raise ValidationError(f"Field not allowed: {k}")

    patch: dict = {}
    for k, raw in payload.items():
        kind = policy.fields[k]
        val = _coerce_value(k, kind, raw)

        if kind == "str" and isinstance(val, str):
            limit = policy.max_lengths.get(k)
            if limit and len(val) > limit:
                raise ValidationError(f"{k} exceeds max length {limit}")

        patch[k] = val

    return patch


def enforce_case_count(key: str, value: int | None, *, allow_zero: bool = False) -> None:
    if value is None:
        raise ValidationError(f"{key} is required")
    if value < 0 or (value == 0 and not allow_zero):
        raise ValidationError(f"{key} must be {'>= 0' if allow_zero else '> 0'}")
    if value > MAX_CASES:
        raise ValidationError(f"{key} cannot exceed {MAX_CASES}")


def enforce_rules_lot_intake(patch: dict) -> None:
    """Business rules for a new lot that the field policy cannot express."""
    enforce_case_count("casesOrdered", patch.get("casesOrdered"))
    available = patch.get("casesAvailable")
    if available is not None:
        enforce_case_count("casesAvailable", available, allow_zero=True)
        if available > patch["casesOrdered"]:
            raise ValidationError("casesAvailable cannot exceed casesOrdered")
    fmt = patch.get("caseFormatLb")
    if fmt is not None and fmt <= 0:
        raise ValidationError("caseFormatLb must be > 0")


def clean_order_lines(raw_lines: Any) -> list[dict]:
    """Validate the wholesale list of order lines sent with an order."""
    if not isinstance(raw_lines, list) or not raw_lines:
        raise ValidationError("At least one order line is required")
    lines = []
    for idx, raw in enumerate(raw_lines, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"lines[{idx}] must be an object")
        material = str(raw.get("material") or "").strip()
        if not material:
            raise ValidationError(f"lines[{idx}].material is required")
        cases = coerce_int(f"lines[{idx}].cases", raw.get("cases"))
        enforce_case_count(f"lines[{idx}].cases", cases)
        line = {
            "id": str(raw.get("id") or "").strip(),
            "material": material,
            "description": str(raw.get("description") or "").strip(),
            "cases": cases,
            "product": str(raw.get("product") or "").strip(),
        }
        if raw.get("formatLb") not in (None, ""):
            line["formatLb"] = _coerce_value(f"lines[{idx}].formatLb", "float", raw.get("formatLb"))
        lines.append(line)
    return lines


def clean_allocation_items(raw_items: Any) -> list[tuple[str, int]]:
    """Validate (lotId, cases) pairs for a new assignment."""
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("Select at least one lot")
    items = []
    for idx, raw in enumerate(raw_items, start=1):
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{idx}] must be an object")
        lot_id = str(raw.get("lotId") or "").strip()
        if not lot_id:
            raise ValidationError(f"items[{idx}].lotId is required")
        cases = coerce_int(f"items[{idx}].cases", raw.get("cases"))
        enforce_case_count(f"items[{idx}].cases", cases)
        items.append((lot_id, cases))
    return items

"""
Warranty input validation.

Turns raw JSON-ish dicts into clean, typed payloads for warranty_service.
Every function either returns the cleaned payload or raises ValidationError
with a field → message map in ``details``; nothing is written before this
runs.

Field limits:
    product_name 1..200, serial/model number ≤100, vin ≤17,
    customer_name ≤200, customer_phone ≤50, customer_address ≤500,
    issue_description 10..5000, note / resolution_notes ≤2000,
    item part_name 1..200, part_number ≤100, issue_description ≤1000,
    denial_reason ≤500, note content 1..5000, page_size 1..100

Amounts are rounded half-up to their column scale on the way in: hours,
rates and money to 2 places, item unit_cost to 4.
"""

import re
from decimal import ROUND_HALF_UP, Decimal

from flask import current_app

from dealer_portal.core.exceptions import ValidationError
from dealer_portal.models.warranty import (
    CLAIM_TYPES,
    ITEM_ISSUE_TYPES,
    PRIORITIES,
    RESOLUTION_TYPES,
    REVIEW_ACTIONS,
    ClaimAction,
    ClaimStatus,
)
from dealer_portal.utils.helpers import (
    parse_bool,
    parse_date_input,
    parse_datetime_input,
    parse_decimal,
)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

SORT_FIELDS = ("created_at", "updated_at", "claim_number", "total_requested", "status")

_OPTIONAL_TEXT_LIMITS = {
    "product_id": 36,
    "serial_number": 100,
    "model_number": 100,
    "rv_unit_id": 36,
    "vin": 17,
    "customer_name": 200,
    "customer_phone": 50,
    "customer_address": 500,
}
_DATE_FIELDS = ("purchase_date", "install_date", "failure_date")
_MONEY_FIELDS = ("labor_hours", "labor_rate", "parts_amount", "shipping_amount")


class _Errors:
    """Collects field errors and raises once."""

    def __init__(self):
        self.details = {}

    def add(self, field, message):
        self.details.setdefault(field, message)

    def raise_if_any(self):
        if self.details:
            first_field, first_message = next(iter(self.details.items()))
            raise ValidationError(f"{first_field}: {first_message}", details=self.details)


def _text(data, field, errors, *, max_len, min_len=0, required=False):
    value = data.get(field)
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            errors.add(field, "is required")
        return None
    if not isinstance(value, str):
        errors.add(field, "must be a string")
        return None
    value = value.strip()
    if len(value) < min_len:
        errors.add(field, f"must be at least {min_len} characters")
    elif len(value) > max_len:
        errors.add(field, f"must be at most {max_len} characters")
    return value


def _choice(data, field, errors, choices, *, required=False, default=None):
    value = data.get(field)
    if value in (None, ""):
        if required:
            errors.add(field, "is required")
        return default
    if value not in choices:
        errors.add(field, f"must be one of: {', '.join(sorted(choices))}")
        return default
    return value


def _non_negative(data, field, errors, *, places=2):
    """Non-negative Decimal rounded half-up to *places* (the column scale) so
    stored values reproduce the totals computed from them.  None keeps it exact.
    """
    value = data.get(field)
    if value in (None, ""):
        return None
    try:
        number = parse_decimal(value)
    except ValueError:
        errors.add(field, "must be a number")
        return None
    if number < 0:
        errors.add(field, "must be zero or greater")
        return None
    if places is None:
        return number
    return number.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def _date(data, field, errors):
    try:
        return parse_date_input(data.get(field))
    except ValueError as exc:
        errors.add(field, str(exc))
        return None


def _flag(data, field, errors, default):
    if field not in data or data[field] is None:
        return default
    try:
        return parse_bool(data[field])
    except ValueError:
        errors.add(field, "must be true or false")
        return default


# ── Items ────────────────────────────────────────────────────────────────────


def validate_items(raw_items, errors=None):
    """Validate a claim item list.  Returns list of cleaned dicts."""
    own_errors = errors is None
    errors = errors or _Errors()
    if not isinstance(raw_items, list):
        errors.add("items", "must be a list")
        if own_errors:
            errors.raise_if_any()
        return []

    cleaned = []
    for index, raw in enumerate(raw_items):
        prefix = f"items[{index}]"
        if not isinstance(raw, dict):
            errors.add(prefix, "must be an object")
            continue
        item_errors = _Errors()
        part_name = _text(raw, "part_name", item_errors, max_len=200, min_len=1, required=True)
        part_number = _text(raw, "part_number", item_errors, max_len=100)
        issue_description = _text(raw, "issue_description", item_errors, max_len=1000)
        issue_type = _choice(raw, "issue_type", item_errors, ITEM_ISSUE_TYPES, required=True)

        quantity = raw.get("quantity", 1)
        if isinstance(quantity, bool) or not isinstance(quantity, (int, str)):
            item_errors.add("quantity", "must be a whole number")
            quantity = None
        else:
            try:
                quantity = int(quantity)
                if quantity < 1:
                    item_errors.add("quantity", "must be at least 1")
            except ValueError:
                item_errors.add("quantity", "must be a whole number")
                quantity = None

        unit_cost = _non_negative(
            {"unit_cost": raw.get("unit_cost", 0)}, "unit_cost", item_errors, places=4,
        )

        for field, message in item_errors.details.items():
            errors.add(f"{prefix}.{field}", message)
        cleaned.append({
            "part_name": part_name,
            "part_number": part_number,
            "quantity": quantity,
            "unit_cost": unit_cost if unit_cost is not None else parse_decimal(0),
            "issue_type": issue_type,
            "issue_description": issue_description,
        })

    if own_errors:
        errors.raise_if_any()
    return cleaned


# ── Claims ───────────────────────────────────────────────────────────────────


def _claim_fields(data, errors, *, partial):
    """Shared create/update field parsing.  With ``partial`` only supplied keys are returned."""
    out = {}

    def supplied(field):
        return not partial or field in data

    if supplied("claim_type"):
        out["claim_type"] = _choice(data, "claim_type", errors, CLAIM_TYPES, required=True)
    if supplied("product_name"):
        out["product_name"] = _text(data, "product_name", errors, max_len=200, min_len=1, required=True)
    if supplied("issue_description"):
        out["issue_description"] = _text(
            data, "issue_description", errors, max_len=5000, min_len=10, required=True,
        )
    if supplied("priority"):
        out["priority"] = _choice(data, "priority", errors, PRIORITIES, default="normal")

    for field, limit in _OPTIONAL_TEXT_LIMITS.items():
        if supplied(field):
            out[field] = _text(data, field, errors, max_len=limit)

    if supplied("customer_email"):
        email = _text(data, "customer_email", errors, max_len=200)
        if email and not _EMAIL_RE.match(email):
            errors.add("customer_email", "must be a valid email address")
        out["customer_email"] = email

    for field in _DATE_FIELDS:
        if supplied(field):
            out[field] = _date(data, field, errors)

    if supplied("is_under_warranty"):
        out["is_under_warranty"] = _flag(data, "is_under_warranty", errors, True)

    for field in _MONEY_FIELDS:
        if supplied(field):
            out[field] = _non_negative(data, field, errors)

    if "items" in data and data["items"] is not None:
        out["items"] = validate_items(data["items"], errors)
    elif not partial:
        out["items"] = None

    return out


def validate_create(data):
    """Validate a create-claim payload.  Adds ``submit_now`` (default False)."""
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    errors = _Errors()
    out = _claim_fields(data, errors, partial=False)
    out["submit_now"] = _flag(data, "submit_now", errors, False)
    errors.raise_if_any()
    return out


def validate_update(data):
    """Validate an edit payload.  Only keys present in *data* are returned."""
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    errors = _Errors()
    out = _claim_fields(data, errors, partial=True)
    errors.raise_if_any()
    return out


# ── Review / respond / notes ─────────────────────────────────────────────────


def _item_decisions(raw, errors):
    if raw is None:
        return None
    if not isinstance(raw, list):
        errors.add("item_decisions", "must be a list")
        return None
    decisions = []
    for index, entry in enumerate(raw):
        prefix = f"item_decisions[{index}]"
        if not isinstance(entry, dict):
            errors.add(prefix, "must be an object")
            continue
        item_id = entry.get("item_id")
        if not item_id or not isinstance(item_id, str):
            errors.add(f"{prefix}.item_id", "is required")
        if "approved" not in entry:
            errors.add(f"{prefix}.approved", "is required")
        d_errors = _Errors()
        approved = _flag(entry, "approved", d_errors, None)
        approved_amount = _non_negative(entry, "approved_amount", d_errors)
        approved_qty = _non_negative(entry, "approved_qty", d_errors, places=None)
        if approved_qty is not None and approved_qty != int(approved_qty):
            d_errors.add("approved_qty", "must be a whole number")
        denial_reason = _text(entry, "denial_reason", d_errors, max_len=500)
        for field, message in d_errors.details.items():
            errors.add(f"{prefix}.{field}", message)
        decisions.append({
            "item_id": item_id,
            "approved": approved,
            "approved_qty": int(approved_qty) if approved_qty is not None else None,
            "approved_amount": approved_amount,
            "denial_reason": denial_reason,
        })
    return decisions


def validate_review(data):
    """Validate a review payload.  ``action`` becomes a ClaimAction."""
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    errors = _Errors()
    raw_action = data.get("action")
    action = None
    if not raw_action:
        errors.add("action", "is required")
    else:
        try:
            action = ClaimAction(raw_action)
        except ValueError:
            action = None
        if action not in REVIEW_ACTIONS:
            errors.add("action", f"must be one of: {', '.join(sorted(a.value for a in REVIEW_ACTIONS))}")
            action = None

    out = {
        "action": action,
        "note": _text(data, "note", errors, max_len=2000),
        "total_approved": _non_negative(data, "total_approved", errors),
        "resolution_type": _choice(data, "resolution_type", errors, RESOLUTION_TYPES),
        "resolution_notes": _text(data, "resolution_notes", errors, max_len=2000),
        "item_decisions": _item_decisions(data.get("item_decisions"), errors),
    }
    if action is ClaimAction.DENY and out["total_approved"] not in (None, 0):
        errors.add("total_approved", "must be 0 or omitted when denying a claim")
    errors.raise_if_any()
    return out


def validate_respond(data):
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    errors = _Errors()
    out = {
        "response": _text(data, "response", errors, max_len=5000, min_len=1, required=True),
        "resubmit": _flag(data, "resubmit", errors, True),
    }
    errors.raise_if_any()
    return out


def validate_note(data):
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    errors = _Errors()
    out = {
        "content": _text(data, "content", errors, max_len=5000, min_len=1, required=True),
        "is_internal": _flag(data, "is_internal", errors, False),
    }
    errors.raise_if_any()
    return out


def validate_close(data):
    if not isinstance(data or {}, dict):
        raise ValidationError("Request body must be a JSON object")
    errors = _Errors()
    out = {"note": _text(data or {}, "note", errors, max_len=2000)}
    errors.raise_if_any()
    return out


# ── List filters ─────────────────────────────────────────────────────────────


def _positive_int(data, field, errors, default, *, maximum=None):
    value = data.get(field)
    if value in (None, ""):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        errors.add(field, "must be a whole number")
        return default
    if number < 1 or (maximum is not None and number > maximum):
        bound = f"between 1 and {maximum}" if maximum else "at least 1"
        errors.add(field, f"must be {bound}")
        return default
    return number


def validate_filters(data):
    """Validate list filters.  'all' (or empty) disables a status/type/priority filter."""
    data = dict(data or {})
    errors = _Errors()
    default_page_size = current_app.config.get("WARRANTY_DEFAULT_PAGE_SIZE", 20)
    max_page_size = current_app.config.get("WARRANTY_MAX_PAGE_SIZE", 100)

    def _enum_filter(field, choices):
        value = data.get(field)
        if value in (None, "", "all"):
            return None
        return _choice(data, field, errors, choices)

    out = {
        "search": (data.get("search") or "").strip() or None,
        "status": _enum_filter("status", {s.value for s in ClaimStatus}),
        "claim_type": _enum_filter("claim_type", CLAIM_TYPES),
        "priority": _enum_filter("priority", PRIORITIES),
        "dealer_id": data.get("dealer_id") or None,
        "assigned_to_id": data.get("assigned_to_id") or None,
        "page": _positive_int(data, "page", errors, 1),
        "page_size": _positive_int(data, "page_size", errors, default_page_size, maximum=max_page_size),
        "sort_by": _choice(data, "sort_by", errors, set(SORT_FIELDS), default="created_at"),
        "sort_order": _choice(data, "sort_order", errors, {"asc", "desc"}, default="desc"),
    }
    for field in ("date_from", "date_to"):
        try:
            out[field] = parse_datetime_input(data.get(field))
        except ValueError as exc:
            errors.add(field, str(exc))
            out[field] = None
    errors.raise_if_any()
    return out

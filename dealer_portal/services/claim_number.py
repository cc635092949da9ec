"""
Warranty claim number generator.

Format: WC-{YEAR}-{SEQ:05d}   (e.g. WC-2026-00001, WC-2026-00042)

Sequences are year-scoped and strictly increasing; a number is never issued
twice, even after the claim that carried it is deleted.

Allocation:
  1. Lock the year's WarrantyClaimSequence row (SELECT … FOR UPDATE), creating
     it on first use.
  2. next = max(counter.last_value, highest existing sequence for the year) + 1
     so a counter that lags behind imported rows cannot collide.
  3. The caller inserts the claim inside a SAVEPOINT; a unique-constraint
     conflict rolls the savepoint back and allocation runs again
     (see insert_with_claim_number).
"""

import logging
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from dealer_portal.core.exceptions import ConflictError
from dealer_portal.models import db
from dealer_portal.models.warranty import WarrantyClaim, WarrantyClaimSequence

logger = logging.getLogger(__name__)

PREFIX = "WC"
DEFAULT_MAX_ATTEMPTS = 5


def format_claim_number(sequence: int, year: int) -> str:
    """WC-2026-00001."""
    return f"{PREFIX}-{year}-{sequence:05d}"


def parse_claim_number(claim_number: str) -> tuple[int, int] | None:
    """Return (year, sequence) or None for anything not shaped like WC-YYYY-NNNNN."""
    parts = (claim_number or "").split("-")
    if len(parts) != 3 or parts[0] != PREFIX:
        return None
    try:
        return int(parts[1]), int(parts[2])
    except ValueError:
        return None


def _highest_issued_sequence(year: int) -> int:
    prefix = f"{PREFIX}-{year}-"
    last = (
        db.session.query(func.max(WarrantyClaim.claim_number))
        .filter(WarrantyClaim.claim_number.like(f"{prefix}%"))
        .scalar()
    )
    parsed = parse_claim_number(last) if last else None
    return parsed[1] if parsed else 0


def allocate_claim_number(year: int | None = None) -> str:
    """Reserve and return the next claim number for *year* (default: current UTC year).

    Must run inside the transaction that inserts the claim; the counter
    increment commits or rolls back with it.
    """
    if year is None:
        year = datetime.now(timezone.utc).year

    counter = (
        db.session.query(WarrantyClaimSequence)
        .filter_by(year=year)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if counter is None:
        counter = WarrantyClaimSequence(year=year, last_value=0)
        db.session.add(counter)

    sequence = max(counter.last_value or 0, _highest_issued_sequence(year)) + 1
    counter.last_value = sequence
    db.session.flush()
    return format_claim_number(sequence, year)


def insert_with_claim_number(claim: WarrantyClaim, *, year: int | None = None) -> WarrantyClaim:
    """Number *claim* and flush it, retrying on a uniqueness conflict.

    Each attempt runs in its own SAVEPOINT so a losing attempt leaves the
    outer transaction usable.  Gives up with ConflictError after
    ``WARRANTY_CLAIM_NUMBER_RETRIES`` attempts.
    """
    max_attempts = current_app.config.get("WARRANTY_CLAIM_NUMBER_RETRIES", DEFAULT_MAX_ATTEMPTS)

    for attempt in range(1, max_attempts + 1):
        try:
            with db.session.begin_nested():
                claim.claim_number = allocate_claim_number(year)
                db.session.add(claim)
                db.session.flush()
            return claim
        except IntegrityError as exc:
            logger.warning(
                "Claim number collision on attempt %d/%d: %s",
                attempt, max_attempts, claim.claim_number,
                extra={"claim_number": claim.claim_number, "error": str(exc.orig)},
            )

    raise ConflictError("WarrantyClaim", "claim_number", claim.claim_number)

"""
Write-side rules: who may save or delete what, payload cleaning and audit stamps.

Bill status is a plain field. Admins may set any of the three statuses on
any save, including moving a processed bill back to submitted. Everyone
else creates bills as submitted and may only edit bills that are still
submitted. Payments and all deletions are admin-only.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from schemas import BILL_STATUSES, Actor, BillPayload, PaymentPayload

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Base class for errors raised by the write workflow."""
    pass


class PermissionDenied(LedgerError):
    """Raised when the actor's role does not allow the action."""
    pass


class ValidationFailed(LedgerError):
    """Raised when a bill or payment form is incomplete."""
    pass


class NotFound(LedgerError):
    pass


def allowed_statuses(actor: Actor, existing=None) -> List[str]:
    """Statuses the actor may save a bill with; empty means read-only."""
    if actor.is_admin:
        return list(BILL_STATUSES)
    if existing is not None and existing.status != "submitted":
        return []
    return ["submitted"]


def check_bill_save(actor: Actor, status: str, existing=None) -> None:
    allowed = allowed_statuses(actor, existing)
    if not allowed:
        logger.warning("User %s tried to edit %s bill %s", actor.id, existing.status, existing.id)
        raise PermissionDenied("Bill can no longer be edited once approved")
    if status not in allowed:
        logger.warning("User %s tried to set bill status %s", actor.id, status)
        raise PermissionDenied("Only admins can approve or process bills")


def require_admin(actor: Actor, action: str) -> None:
    if not actor.is_admin:
        logger.warning("User %s denied: %s", actor.id, action)
        raise PermissionDenied(f"Admin access required to {action}")


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def clean_bill(payload: BillPayload, party_field: str, party_label: str) -> dict:
    """Validate a bill form and return the document fields to store."""
    party_id = getattr(payload, party_field, "")
    if not party_id:
        raise ValidationFailed(f"Please select a {party_label}")
    if not payload.bill_number.strip():
        raise ValidationFailed("Bill number is required")
    if payload.amount <= 0:
        raise ValidationFailed("Bill amount must be greater than 0")
    if not payload.category:
        raise ValidationFailed("Please select a category")
    return {
        "project_id": payload.project_id,
        party_field: party_id,
        "bill_number": payload.bill_number.strip(),
        "date": payload.date.isoformat(),
        "amount": payload.amount,
        "discount": payload.discount,
        "category": payload.category,
        "subcategory": payload.subcategory or None,
        "gst": payload.gst,
        "description": _blank_to_none(payload.description),
        "status": payload.status,
    }


def clean_payment(payload: PaymentPayload, party_field: str, party_label: str) -> dict:
    """Validate a payment form and return the document fields to store."""
    party_id = getattr(payload, party_field, "")
    if not party_id:
        raise ValidationFailed(f"Please select a {party_label}")
    if payload.amount <= 0:
        raise ValidationFailed("Amount must be greater than 0")
    if not payload.payment_method_id:
        raise ValidationFailed("Please select a payment method")
    return {
        "project_id": payload.project_id,
        party_field: party_id,
        "date": payload.date.isoformat(),
        "amount": payload.amount,
        "payment_method_id": payload.payment_method_id,
        "description": _blank_to_none(payload.description),
    }


def stamp(data: dict, actor: Actor, created: bool = False,
          now: Optional[datetime] = None) -> dict:
    """Copy of data with modified_* (and created_* on insert) filled in."""
    now = (now or datetime.now(timezone.utc)).isoformat()
    stamped = dict(data, modified_by=actor.id, modified_date=now)
    if created:
        stamped.update(created_by=actor.id, created_date=now)
    return stamped

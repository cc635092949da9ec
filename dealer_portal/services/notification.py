"""
Dealer Portal
Notification Service.

Creates in-app notifications for warranty events.  Helpers are
called by warranty_service only after the claim change has committed; each
helper commits its own row.
"""

from dealer_portal.models import db
from dealer_portal.models.notification import ADMINS_RECIPIENT, Notification
from dealer_portal.models.warranty import STATUS_LABELS, ClaimAction, ClaimStatus

_REVIEW_SEVERITY = {
    ClaimAction.APPROVE: "success",
    ClaimAction.PARTIAL: "success",
    ClaimAction.DENY: "warning",
    ClaimAction.REQUEST_INFO: "info",
}


class NotificationService:
    """Stateless service class for notification operations."""

    # ── Create ────────────────────────────────────────────────────────────

    @staticmethod
    def create(*, title, message="", category="warranty", severity="info",
               recipient=ADMINS_RECIPIENT, entity_type="", entity_id=None):
        """
        Create a single notification record.

        Returns:
            The created Notification instance (already committed).
        """
        notif = Notification(
            recipient=recipient,
            title=title,
            message=message,
            category=category,
            severity=severity,
            entity_type=entity_type,
            entity_id=entity_id,
        )
        db.session.add(notif)
        db.session.commit()
        return notif

    # ── Warranty Helpers ──────────────────────────────────────────────────

    @staticmethod
    def notify_claim_submitted(claim):
        """Tell reviewers a claim entered the queue."""
        return NotificationService.create(
            title=f"Warranty claim {claim.claim_number} submitted",
            message=f"{claim.product_name}, {claim.claim_type.replace('_', ' ')}.",
            recipient=ADMINS_RECIPIENT,
            entity_type="warranty_claim",
            entity_id=claim.id,
        )

    @staticmethod
    def notify_claim_reviewed(claim, action: ClaimAction):
        """Tell the submitting dealer user about a review decision."""
        label = STATUS_LABELS[ClaimStatus(claim.status)]
        return NotificationService.create(
            title=f"Warranty claim {claim.claim_number}: {label}",
            message=claim.resolution_notes or "",
            severity=_REVIEW_SEVERITY.get(action, "info"),
            recipient=claim.submitted_by_id,
            entity_type="warranty_claim",
            entity_id=claim.id,
        )

    @staticmethod
    def notify_claim_assigned(claim):
        return NotificationService.create(
            title=f"Warranty claim {claim.claim_number} assigned to you",
            message=claim.product_name,
            recipient=claim.assigned_to_id,
            entity_type="warranty_claim",
            entity_id=claim.id,
        )

    @staticmethod
    def notify_info_provided(claim, resubmitted: bool):
        """Tell the assignee (or all reviewers) that the dealer answered."""
        suffix = " and resubmitted" if resubmitted else ""
        return NotificationService.create(
            title=f"Dealer responded on {claim.claim_number}{suffix}",
            recipient=claim.assigned_to_id or ADMINS_RECIPIENT,
            entity_type="warranty_claim",
            entity_id=claim.id,
        )

    @staticmethod
    def notify_claim_closed(claim):
        return NotificationService.create(
            title=f"Warranty claim {claim.claim_number} closed",
            recipient=claim.submitted_by_id,
            entity_type="warranty_claim",
            entity_id=claim.id,
        )

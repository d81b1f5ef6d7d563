"""Customer decision notifications.

Notifications are side effects of a committed decision. They are dispatched on a
background pool; a failed send is logged and counted but never rolls back the claim.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Protocol

from claims_engine.config.settings import get_notification_workers
from claims_engine.models.claim import Claim, Policy, Product, Verdict
from claims_engine.observability import get_logger, get_metrics

logger = get_logger(__name__)


@dataclass(frozen=True)
class DecisionNotification:
    claim_id: str
    recipient: str
    subject: str
    body: str
    verdict: Verdict


class NotificationDispatcher(Protocol):
    """Anything that can deliver a DecisionNotification (email, queue, webhook)."""

    def send(self, notification: DecisionNotification) -> None: ...


def _format_amount(value: float) -> str:
    return f"{value:g}" if float(value).is_integer() else f"{value:.2f}"


def build_decision_notification(
    claim: Claim,
    policy: Policy,
    product: Product,
    verdict: Verdict,
    reason: str,
) -> DecisionNotification:
    """Render the customer email for an automated verdict."""
    name = policy.customer_name or "Customer"
    if verdict is Verdict.ACCEPTED:
        subject = f"Claim Approved - {claim.claim_number}"
        if product.excess_1 > 0:
            steps = (
                f"1. Pay the excess amount of €{_format_amount(product.excess_1)}\n"
                "2. Once payment is received, we'll begin the fulfillment process\n"
                "3. You can track your claim progress in the customer portal"
            )
        else:
            steps = (
                "1. We'll begin the fulfillment process immediately\n"
                "2. You can track your claim progress in the customer portal"
            )
        body = (
            f"Dear {name},\n\n"
            f"Good news! Your claim {claim.claim_number} has been approved.\n\n"
            f"Decision: {reason}\n\n"
            f"Next Steps:\n{steps}\n\n"
            "Log in to your customer portal to view details and track progress.\n\n"
            "Thank you for choosing our insurance service."
        )
    else:
        subject = f"Claim Under Review - {claim.claim_number}"
        body = (
            f"Dear {name},\n\n"
            f"Your claim {claim.claim_number} is currently under review by our claims team.\n\n"
            f"Reason: {reason}\n\n"
            "We'll notify you once a decision has been made. This typically takes 24-48 hours.\n\n"
            "Thank you for your patience."
        )
    return DecisionNotification(
        claim_id=claim.id,
        recipient=policy.customer_email,
        subject=subject,
        body=body,
        verdict=verdict,
    )


class LoggingNotificationDispatcher:
    """Default dispatcher: writes the notification to the log instead of sending it."""

    def send(self, notification: DecisionNotification) -> None:
        logger.log_event(
            "notification_sent",
            claim_id=notification.claim_id,
            recipient=notification.recipient,
            subject=notification.subject,
        )


class BackgroundNotifier:
    """Runs a NotificationDispatcher on a thread pool and logs failures."""

    def __init__(
        self,
        dispatcher: NotificationDispatcher | None = None,
        max_workers: int | None = None,
    ):
        self._dispatcher = dispatcher or LoggingNotificationDispatcher()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or get_notification_workers(),
            thread_name_prefix="claims-notify",
        )

    def _send(self, notification: DecisionNotification) -> None:
        try:
            self._dispatcher.send(notification)
        except Exception as e:
            get_metrics().increment("notification_failed")
            logger.log_event(
                "notification_failed",
                level=logging.ERROR,
                claim_id=notification.claim_id,
                subject=notification.subject,
                error=str(e),
            )
            return
        get_metrics().increment("notification_sent")

    def submit(self, notification: DecisionNotification) -> Future:
        """Queue a notification; the returned future never raises."""
        return self._executor.submit(self._send, notification)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

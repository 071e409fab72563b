from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from backend.app.scheduling.models import CancellationPolicy


class CancellationOutcome(str, Enum):
    ALLOWED = "allowed"
    DISALLOWED = "online_cancellation_disallowed"
    TOO_LATE = "too_late_to_cancel"


@dataclass(frozen=True)
class CancellationDecision:
    outcome: CancellationOutcome
    terms: dict = field(default_factory=dict)

    @property
    def allowed(self) -> bool:
        return self.outcome is CancellationOutcome.ALLOWED


def evaluate_cancellation(
    scheduled: datetime,
    policy: CancellationPolicy | None,
    now: datetime,
) -> CancellationDecision:
    """Decide whether an online cancellation may go ahead.

    Cancelling inside the no-fee window is rejected rather than charged; the
    policy's fee terms travel with the decision so a billing collaborator or
    the caller can present them.
    """
    if policy is None:
        return CancellationDecision(CancellationOutcome.ALLOWED)

    if not policy.allow_online_cancellation:
        return CancellationDecision(CancellationOutcome.DISALLOWED, policy.terms())

    if policy.hours_before_no_fee is not None:
        if scheduled - now < timedelta(hours=policy.hours_before_no_fee):
            return CancellationDecision(CancellationOutcome.TOO_LATE, policy.terms())

    return CancellationDecision(CancellationOutcome.ALLOWED)

"""
Exception handling utilities.

Defines categorized exception types for the affiliate program so callers
can decide how to react: swallow idempotent successes, report precondition
failures, surface external failures for manual retry, fail loudly on
invariant violations.
"""

from typing import TYPE_CHECKING, Any


if TYPE_CHECKING:
    from app.models.affiliate import Affiliate
    from app.models.referral import Referral


class AffiliateProgramError(Exception):
    """Base error for the affiliate program core."""

    code = "AFFILIATE_PROGRAM_ERROR"

    def __init__(self, message: str | None = None, **context: Any) -> None:
        self.context = context
        super().__init__(message or self.code)


# --- Idempotent success -----------------------------------------------------


class IdempotentSuccess(AffiliateProgramError):
    """The operation already happened; callers treat this as success."""

    code = "IDEMPOTENT_SUCCESS"


class AlreadyRegistered(IdempotentSuccess):
    """User already has an affiliate record."""

    code = "ALREADY_REGISTERED"

    def __init__(self, affiliate: "Affiliate") -> None:
        self.affiliate = affiliate
        super().__init__(
            f"User {affiliate.user_id} is already registered as affiliate",
            affiliate_id=affiliate.id,
        )


class DuplicateCharge(IdempotentSuccess):
    """A referral for this subscription charge already exists."""

    code = "DUPLICATE_CHARGE"

    def __init__(self, referral: "Referral") -> None:
        self.referral = referral
        super().__init__(
            f"Charge {referral.subscription_charge_id} already recorded "
            f"as referral {referral.id}",
            referral_id=referral.id,
        )


# --- Precondition failures --------------------------------------------------


class PreconditionFailed(AffiliateProgramError):
    """Reported to the caller, never retried automatically."""

    code = "PRECONDITION_FAILED"


class AffiliateNotFound(PreconditionFailed):
    code = "AFFILIATE_NOT_FOUND"


class InvalidReferralCode(PreconditionFailed):
    """Referral code is blank, unknown or belongs to a deactivated affiliate."""

    code = "INVALID_REFERRAL_CODE"


class NotOnboarded(PreconditionFailed):
    code = "NOT_ONBOARDED"


class RequestAlreadyPending(PreconditionFailed):
    code = "REQUEST_ALREADY_PENDING"


class NoClearedFunds(PreconditionFailed):
    code = "NO_CLEARED_FUNDS"

    def __init__(self, processing_amount: int = 0) -> None:
        self.processing_amount = processing_amount
        super().__init__(
            "No cleared earnings available",
            processing_amount=processing_amount,
        )


class BelowMinimum(PreconditionFailed):
    code = "BELOW_MINIMUM"

    def __init__(self, cleared_amount: int, minimum_amount: int) -> None:
        self.cleared_amount = cleared_amount
        self.minimum_amount = minimum_amount
        super().__init__(
            f"Cleared balance {cleared_amount} is below minimum {minimum_amount}",
            cleared_amount=cleared_amount,
            minimum_amount=minimum_amount,
        )


class PayoutRequestNotFound(PreconditionFailed):
    code = "PAYOUT_REQUEST_NOT_FOUND"


class AlreadyProcessed(PreconditionFailed):
    code = "ALREADY_PROCESSED"

    def __init__(self, request_id: int, status: str) -> None:
        self.request_id = request_id
        self.status = status
        super().__init__(
            f"Payout request {request_id} already processed (status: {status})",
            request_id=request_id,
            status=status,
        )


class RejectionReasonRequired(PreconditionFailed):
    code = "REJECTION_REASON_REQUIRED"


# --- External dependency failures -------------------------------------------


class ExternalDependencyError(AffiliateProgramError):
    """Payout provider failure; surfaced for manual retry."""

    code = "EXTERNAL_DEPENDENCY_ERROR"


class PayoutDestinationError(ExternalDependencyError):
    code = "PAYOUT_DESTINATION_ERROR"


class TransferFailed(ExternalDependencyError):
    code = "TRANSFER_FAILED"


# --- Loud failures ----------------------------------------------------------


class InvariantViolation(AffiliateProgramError):
    """A uniqueness or consistency guarantee was bypassed."""

    code = "INVARIANT_VIOLATION"


class CodeGenerationExhausted(AffiliateProgramError):
    """No free referral code found within the allowed attempts."""

    code = "CODE_GENERATION_EXHAUSTED"


# Exception categories based on handling strategy

# Treated as success by the layer above
TREAT_AS_SUCCESS = (IdempotentSuccess,)

# Reported to the caller with an actionable message
REPORT_TO_CALLER = (PreconditionFailed,)

# Surfaced for manual retry; must leave no ambiguous state
SURFACE_FOR_RETRY = (ExternalDependencyError,)

"""
Tests for the affiliate program exception taxonomy.

Callers branch on the category: idempotent success, precondition failure,
external dependency failure, invariant violation.
"""

from types import SimpleNamespace

import pytest

from app.utils.exceptions import (
    REPORT_TO_CALLER,
    SURFACE_FOR_RETRY,
    TREAT_AS_SUCCESS,
    AffiliateNotFound,
    AlreadyProcessed,
    AlreadyRegistered,
    BelowMinimum,
    CodeGenerationExhausted,
    DuplicateCharge,
    IdempotentSuccess,
    InvalidReferralCode,
    InvariantViolation,
    NoClearedFunds,
    NotOnboarded,
    PayoutDestinationError,
    PreconditionFailed,
    RequestAlreadyPending,
    TransferFailed,
)


class TestExceptionCategories:
    """Exception handling categories."""

    def test_already_registered_is_idempotent_success(self) -> None:
        affiliate = SimpleNamespace(id=7, user_id="user-1")
        exc = AlreadyRegistered(affiliate)

        assert isinstance(exc, TREAT_AS_SUCCESS)
        assert not isinstance(exc, REPORT_TO_CALLER)
        assert exc.affiliate is affiliate
        assert exc.context == {"affiliate_id": 7}

    def test_duplicate_charge_is_idempotent_success(self) -> None:
        referral = SimpleNamespace(id=3, subscription_charge_id="ch_1")
        exc = DuplicateCharge(referral)

        assert isinstance(exc, IdempotentSuccess)
        assert "ch_1" in str(exc)

    @pytest.mark.parametrize(
        "exc",
        [
            NotOnboarded(),
            RequestAlreadyPending(),
            NoClearedFunds(),
            BelowMinimum(999, 1000),
            AlreadyProcessed(1, "paid"),
            AffiliateNotFound(),
            InvalidReferralCode(code="NOPE"),
        ],
    )
    def test_precondition_failures(self, exc: Exception) -> None:
        assert isinstance(exc, REPORT_TO_CALLER)
        assert not isinstance(exc, SURFACE_FOR_RETRY)
        assert not isinstance(exc, TREAT_AS_SUCCESS)

    @pytest.mark.parametrize("exc", [TransferFailed(), PayoutDestinationError()])
    def test_external_failures_are_retryable(self, exc: Exception) -> None:
        assert isinstance(exc, SURFACE_FOR_RETRY)
        assert not isinstance(exc, REPORT_TO_CALLER)

    @pytest.mark.parametrize(
        "exc", [InvariantViolation(), CodeGenerationExhausted()]
    )
    def test_loud_failures_belong_to_no_soft_category(self, exc: Exception) -> None:
        assert not isinstance(exc, TREAT_AS_SUCCESS)
        assert not isinstance(exc, REPORT_TO_CALLER)
        assert not isinstance(exc, SURFACE_FOR_RETRY)


class TestExceptionDetail:
    """Exceptions carry data for actionable messages."""

    def test_default_message_is_code(self) -> None:
        assert str(NotOnboarded()) == "NOT_ONBOARDED"

    def test_below_minimum_amounts(self) -> None:
        exc = BelowMinimum(cleared_amount=999, minimum_amount=1000)

        assert exc.cleared_amount == 999
        assert exc.minimum_amount == 1000
        assert exc.code == "BELOW_MINIMUM"

    def test_no_cleared_funds_processing_amount(self) -> None:
        assert NoClearedFunds(processing_amount=1960).processing_amount == 1960

    def test_already_processed_status(self) -> None:
        exc = AlreadyProcessed(5, "rejected")

        assert isinstance(exc, PreconditionFailed)
        assert exc.status == "rejected"
        assert "rejected" in str(exc)

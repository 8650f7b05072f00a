"""
Tests for the rollback decorator.
"""

from types import SimpleNamespace

import pytest

from app.utils.db_decorators import with_rollback_on_error
from app.utils.exceptions import DuplicateCharge, NotOnboarded


class Worker:
    def __init__(self, session, error: Exception | None = None):
        self.session = session
        self.error = error

    @with_rollback_on_error
    async def run(self) -> str:
        if self.error:
            raise self.error
        return "done"


class TestWithRollbackOnError:
    """Tests for with_rollback_on_error."""

    @pytest.mark.asyncio
    async def test_success_no_rollback(self, mock_session):
        assert await Worker(mock_session).run() == "done"
        mock_session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_rolls_back_and_reraises(self, mock_session):
        with pytest.raises(NotOnboarded):
            await Worker(mock_session, NotOnboarded()).run()
        mock_session.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_idempotent_success_passes_through(self, mock_session):
        """Idempotent successes keep the loaded objects usable."""
        referral = SimpleNamespace(id=1, subscription_charge_id="ch_1")

        with pytest.raises(DuplicateCharge):
            await Worker(mock_session, DuplicateCharge(referral)).run()
        mock_session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_session_keyword(self, mock_session):
        @with_rollback_on_error
        async def failing(session=None):
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await failing(session=mock_session)
        mock_session.rollback.assert_awaited_once()

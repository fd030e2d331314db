"""
Unit tests for BalanceMutator.

Tests cover field validation and statement dispatch with a mocked session.
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from app.services.affiliate.balance_mutator import BalanceMutator
from app.utils.exceptions import AffiliateNotFoundError


@pytest.fixture
def mutator(mock_session):
    """Create BalanceMutator with mocked session."""
    return BalanceMutator(mock_session)


class TestApply:
    """Test BalanceMutator.apply."""

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, mutator, mock_session):
        with pytest.raises(ValueError, match="Unknown balance fields"):
            await mutator.apply(1, {"full_name": Decimal("1")})
        mock_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_zero_deltas_skip_update(self, mutator, mock_session):
        await mutator.apply(1, {"pending_balance": Decimal("0")})
        mock_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_single_statement(self, mutator, mock_session):
        mock_session.execute.return_value = MagicMock(rowcount=1)

        await mutator.apply(
            1,
            {
                "direct_earnings": Decimal("10"),
                "total_earnings": Decimal("10"),
                "pending_balance": Decimal("10"),
            },
        )

        assert mock_session.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_missing_affiliate(self, mutator, mock_session):
        mock_session.execute.return_value = MagicMock(rowcount=0)

        with pytest.raises(AffiliateNotFoundError):
            await mutator.apply(42, {"pending_balance": Decimal("5")})


class TestWithdraw:
    """Test guarded decrement."""

    @pytest.mark.asyncio
    async def test_non_positive_amount_rejected(self, mutator):
        with pytest.raises(ValueError):
            await mutator.withdraw(1, "available_balance", Decimal("0"))

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, mutator):
        with pytest.raises(ValueError):
            await mutator.withdraw(1, "mobile", Decimal("5"))

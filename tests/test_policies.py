"""Tests for slippage/deadline policies and request models."""

import pytest
from pydantic import ValidationError

from swapbot.domain.models import ApprovalState, BalanceChange, SwapRequest
from swapbot.domain.policies import deadline_from, min_output

from conftest import TOKEN_A, TOKEN_B


class TestMinOutput:
    def test_five_percent(self):
        assert min_output(1000, 500) == 950
        assert min_output(2_000_000, 500) == 1_900_000

    def test_floor_rounding(self):
        """Integer floor: 999 * 0.95 = 949.05 -> 949."""
        assert min_output(999, 500) == 949

    @pytest.mark.parametrize("q", [0, 1, 19, 20, 10**30 + 7])
    def test_bounds(self, q):
        m = min_output(q, 500)
        assert 0 <= m <= q

    def test_edges(self):
        assert min_output(12345, 0) == 12345
        assert min_output(12345, 10_000) == 0

    def test_invalid(self):
        with pytest.raises(ValueError):
            min_output(-1, 500)
        with pytest.raises(ValueError):
            min_output(100, 10_001)


class TestDeadline:
    def test_offset_added_to_submission_time(self):
        assert deadline_from(1_700_000_000.9, 600) == 1_700_000_600

    def test_non_positive_offset(self):
        with pytest.raises(ValueError):
            deadline_from(0, 0)


class TestSwapRequest:
    def test_defaults(self):
        req = SwapRequest(token_in=TOKEN_A, token_out=TOKEN_B, amount_in="0.001")
        assert req.slippage_bps == 500
        assert req.deadline_sec == 600
        assert req.path == [TOKEN_A, TOKEN_B]

    def test_checksums_addresses(self):
        lower = "0x" + "ab" * 20
        req = SwapRequest(token_in=lower, token_out=TOKEN_B, amount_in="1")
        assert req.token_in != lower
        assert req.token_in.lower() == lower

    def test_immutable(self):
        req = SwapRequest(token_in=TOKEN_A, token_out=TOKEN_B, amount_in="1")
        with pytest.raises(ValidationError):
            req.amount_in = "2"

    def test_rejects_bad_values(self):
        with pytest.raises(ValidationError):
            SwapRequest(token_in="nope", token_out=TOKEN_B, amount_in="1")
        with pytest.raises(ValidationError):
            SwapRequest(token_in=TOKEN_A, token_out=TOKEN_B, amount_in="1", slippage_bps=10_001)


class TestSmallModels:
    def test_balance_delta(self):
        assert BalanceChange(100, 40).delta == -60

    def test_approval_terminal_states(self):
        assert not ApprovalState.UNCONFIRMED.terminal
        assert ApprovalState.CONFIRMED.terminal
        assert ApprovalState.FAILED.terminal

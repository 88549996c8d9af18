"""Tests for the approval state machine and its retry loop."""

import threading
from unittest.mock import MagicMock

import pytest
from hexbytes import HexBytes
from web3.exceptions import Web3RPCError

from swapbot.domain.models import ApprovalState
from swapbot.services.approval import ApprovalManager, next_approval_state
from swapbot.services.tx_service import TxService
from swapbot.services.exceptions import (
    OperationCancelled,
    TransactionRevertedError,
    TransactionSubmissionError,
    TransactionTimeoutError,
)

from conftest import ROUTER, TOKEN_A

U = ApprovalState.UNCONFIRMED
C = ApprovalState.CONFIRMED
F = ApprovalState.FAILED


class TestTransition:
    """Pure transition function."""

    def test_success_confirms(self):
        assert next_approval_state(U, 1, 5, succeeded=True) is C
        assert next_approval_state(U, 5, 5, succeeded=True) is C

    def test_failure_below_max_retries(self):
        for attempts in range(1, 5):
            assert next_approval_state(U, attempts, 5, succeeded=False) is U

    def test_failure_at_max_fails(self):
        assert next_approval_state(U, 5, 5, succeeded=False) is F

    def test_terminal_states_absorb(self):
        assert next_approval_state(C, 9, 5, succeeded=False) is C
        assert next_approval_state(F, 1, 5, succeeded=True) is F


def _fail():
    return TransactionSubmissionError("rpc rejected")


class TestApprovalManager:
    def test_first_attempt(self, approvals, tx, sleeps):
        res = approvals.ensure_approval(TOKEN_A, ROUTER, 10**15)

        assert res.state is C
        assert res.attempts == 1
        assert res.tx_hash.startswith("0x")
        assert tx.sent == [("approve", TOKEN_A, ROUTER, 10**15)]
        assert sleeps == []

    def test_confirms_after_retries(self, approvals, tx, sleeps):
        tx.script["approve"] = [
            _fail(),
            TransactionRevertedError("0xdead", {"status": 0}, "reverted"),
            TransactionTimeoutError("0xbeef", 180),
        ]
        res = approvals.ensure_approval(TOKEN_A, ROUTER, 7)

        assert res.state is C
        assert res.attempts == 4
        assert len(res.errors) == 3
        assert tx.sent_kinds() == ["approve"] * 4
        # pause between attempts, none after the last
        assert sleeps == [0.5, 0.5, 0.5]

    def test_all_attempts_fail(self, approvals, tx):
        tx.script["approve"] = [_fail() for _ in range(10)]
        res = approvals.ensure_approval(TOKEN_A, ROUTER, 7)

        assert res.state is F
        assert res.attempts == 5
        assert tx.sent_kinds() == ["approve"] * 5

    def test_same_absolute_amount_each_attempt(self, approvals, tx):
        tx.script["approve"] = [_fail(), _fail()]
        approvals.ensure_approval(TOKEN_A, ROUTER, 123)
        assert {f[3] for f in tx.sent} == {123}

    def test_unexpected_error_propagates(self, approvals, tx):
        tx.script["approve"] = [RuntimeError("bug")]
        with pytest.raises(RuntimeError):
            approvals.ensure_approval(TOKEN_A, ROUTER, 1)

    def test_skip_when_allowance_covers(self, chain, tx):
        chain.allowances[(TOKEN_A, ROUTER)] = 10**18
        mgr = ApprovalManager(chain, tx, skip_if_allowed=True)
        res = mgr.ensure_approval(TOKEN_A, ROUTER, 10**15)

        assert res.state is C
        assert res.skipped
        assert res.attempts == 0
        assert tx.sent == []

    def test_no_skip_when_allowance_short(self, chain, tx):
        chain.allowances[(TOKEN_A, ROUTER)] = 1
        mgr = ApprovalManager(chain, tx, skip_if_allowed=True)
        res = mgr.ensure_approval(TOKEN_A, ROUTER, 10**15)

        assert res.state is C
        assert not res.skipped
        assert tx.sent_kinds() == ["approve"]

    def test_cancel_before_first_attempt(self, chain, tx):
        cancel = threading.Event()
        cancel.set()
        tx.script["approve"] = [_fail()]
        mgr = ApprovalManager(chain, tx, retry_delay=30)
        with pytest.raises(OperationCancelled):
            mgr.ensure_approval(TOKEN_A, ROUTER, 1, cancel=cancel)
        assert tx.sent == []

    def test_cancel_between_attempts(self, chain, tx):
        cancel = threading.Event()
        tx.script["approve"] = [_fail()]
        mgr = ApprovalManager(chain, tx, retry_delay=30)

        original_send = tx.send

        def send_then_cancel(fn, **kw):
            cancel.set()
            return original_send(fn, **kw)

        tx.send = send_then_cancel
        with pytest.raises(OperationCancelled):
            mgr.ensure_approval(TOKEN_A, ROUTER, 1, cancel=cancel)
        assert len(tx.sent) == 1

    def test_max_attempts_validated(self, chain, tx):
        with pytest.raises(ValueError):
            ApprovalManager(chain, tx, max_attempts=0)


class TestApprovalWithTxService:
    """Real TxService on a mocked web3 handle."""

    def test_rpc_error_during_receipt_wait_is_polled_through(self):
        w3 = MagicMock()
        w3.eth.get_transaction_count.return_value = 0
        w3.eth.estimate_gas.return_value = 50_000
        w3.eth.gas_price = 1
        w3.eth.send_raw_transaction.return_value = HexBytes("0x" + "cd" * 32)
        w3.eth.get_transaction_receipt.side_effect = [Web3RPCError("rate limited"), {"status": 1}]

        chain = MagicMock()
        chain.fn_approve.return_value.build_transaction.side_effect = lambda base: dict(base, data="0x")
        tx = TxService(w3, "0x" + "01" * 32, sleep=lambda s: None)

        res = ApprovalManager(chain, tx).ensure_approval(TOKEN_A, ROUTER, 1)

        assert res.state is C
        assert res.attempts == 1
        assert res.tx_hash == "0x" + "cd" * 32

"""Pytest configuration and fixtures.

The chain and the transaction sender are replaced by in-memory fakes that
keep the same method names as swapbot.chain.Chain / swapbot.services.tx_service.TxService.
"""

import pytest

from swapbot.domain.models import Token
from swapbot.services.approval import ApprovalManager
from swapbot.services.quote_service import QuoteService
from swapbot.services.swap_executor import SwapExecutor

TOKEN_A = "0x1111111111111111111111111111111111111111"
TOKEN_B = "0x2222222222222222222222222222222222222222"
ROUTER = "0x3333333333333333333333333333333333333333"
OWNER = "0x4444444444444444444444444444444444444444"


class FakeChain:
    """Chain stand-in: fixed tokens, mutable balances, scripted getAmountsOut."""

    def __init__(self):
        self.router_address = ROUTER
        self.tokens = {
            TOKEN_A: Token(TOKEN_A, 18, "WINI"),
            TOKEN_B: Token(TOKEN_B, 6, "USDT"),
        }
        self.balances = {TOKEN_A: 10 * 10**18, TOKEN_B: 0}
        self.allowances = {}
        self.amounts_out = None          # list, callable(amount_in, path) or Exception
        self.calls = []

    def token(self, addr):
        self.calls.append(("token", addr))
        return self.tokens[addr]

    def decimals(self, addr):
        return self.tokens[addr].decimals

    def balance_of(self, token, owner):
        self.calls.append(("balance_of", token, owner))
        return self.balances[token]

    def allowance(self, token, owner, spender):
        self.calls.append(("allowance", token, owner, spender))
        return self.allowances.get((token, spender), 0)

    def get_amounts_out(self, amount_in, path):
        self.calls.append(("get_amounts_out", amount_in, list(path)))
        if isinstance(self.amounts_out, Exception):
            raise self.amounts_out
        if callable(self.amounts_out):
            return self.amounts_out(amount_in, path)
        return self.amounts_out

    def fn_approve(self, token, spender, amount):
        return ("approve", token, spender, amount)

    def fn_swap_exact_tokens_for_tokens(self, amount_in, min_out, path, to, deadline):
        return ("swap", amount_in, min_out, list(path), to, deadline)

    def count(self, name):
        return sum(1 for c in self.calls if c[0] == name)


class FakeTx:
    """
    TxService stand-in. Scripted outcomes per call kind: each entry is either
    an Exception (raised) or None (success). Missing entries mean success.
    A successful swap moves balances on the FakeChain.
    """

    def __init__(self, chain: FakeChain):
        self.chain = chain
        self.sent = []
        self.script = {"approve": [], "swap": []}
        self.swap_out_amount = None
        self._n = 0

    def sender_address(self):
        return OWNER

    def send(self, fn, *, wait=True, cancel=None, **kw):
        kind = fn[0]
        self.sent.append(fn)
        self.chain.calls.append(("send", kind))
        self._n += 1
        script = self.script[kind]
        if script:
            outcome = script.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
        tx_hash = "0x" + f"{self._n:064x}"
        if kind == "swap":
            _, amount_in, min_out, path, _to, _deadline = fn
            self.chain.balances[path[0]] -= amount_in
            self.chain.balances[path[-1]] += self.swap_out_amount if self.swap_out_amount is not None else min_out
        return {
            "tx_hash": tx_hash,
            "status": 1,
            "receipt": {"status": 1, "gasUsed": 120_000, "blockNumber": 42, "transactionHash": tx_hash},
            "gas_limit_used": 160_000,
            "gas_price_wei": 10 * 10**9,
        }

    def sent_kinds(self):
        return [f[0] for f in self.sent]


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def tx(chain):
    return FakeTx(chain)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def approvals(chain, tx, sleeps):
    return ApprovalManager(chain, tx, max_attempts=5, retry_delay=0.5, sleep=sleeps.append)


@pytest.fixture
def executor(chain, tx, approvals):
    return SwapExecutor(chain, tx, QuoteService(chain), approvals, clock=lambda: 1_700_000_000.0)

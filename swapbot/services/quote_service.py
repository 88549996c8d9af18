"""
Router pricing via getAmountsOut. Quotes are never cached or retried:
a failed or malformed quote aborts the current swap attempt.
"""

from typing import Sequence

from swapbot.chain import Chain
from swapbot.domain.models import Quote
from swapbot.utils.log import log_debug
from .exceptions import QuoteUnavailable, SwapBotError


class QuoteService:
    def __init__(self, chain: Chain):
        self.chain = chain

    def get_quote(self, path: Sequence[str], amount_in: int) -> Quote:
        path = list(path)
        if len(path) < 2:
            raise QuoteUnavailable("path needs at least input and output token", path=path)

        try:
            amounts = self.chain.get_amounts_out(int(amount_in), path)
        except SwapBotError:
            raise
        except Exception as e:
            # reverts here usually mean "no pair / no liquidity"
            raise QuoteUnavailable(f"getAmountsOut failed: {e}", path=path) from e

        if not amounts or len(amounts) < 2:
            raise QuoteUnavailable("Unexpected response from getAmountsOut", path=path, amounts=amounts)
        if len(amounts) != len(path):
            raise QuoteUnavailable(
                f"getAmountsOut returned {len(amounts)} amounts for a path of {len(path)}",
                path=path, amounts=amounts,
            )

        amount_out = int(amounts[-1])
        if amount_out <= 0:
            raise QuoteUnavailable("router quoted 0 output", path=path, amounts=amounts)

        log_debug(f"[QUOTE] {amount_in} -> {amount_out} via {len(path) - 1} hop(s)")
        return Quote(
            path=tuple(path),
            amount_in=int(amounts[0]),
            amount_out=amount_out,
            amounts=tuple(int(a) for a in amounts),
        )

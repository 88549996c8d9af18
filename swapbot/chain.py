from web3 import Web3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError
from typing import List, Optional, Sequence

from swapbot.domain.models import Token

# ABIs mínimos (fragmentos): somente o que é usado
ABI_ERC20 = [
  {"name":"decimals","outputs":[{"type":"uint8"}],"inputs":[],"stateMutability":"view","type":"function"},
  {"name":"symbol","outputs":[{"type":"string"}],"inputs":[],"stateMutability":"view","type":"function"},
  {"name":"balanceOf","outputs":[{"type":"uint256"}],"inputs":[{"type":"address","name":"owner"}],"stateMutability":"view","type":"function"},
  {"name":"allowance","outputs":[{"type":"uint256"}],
   "inputs":[{"type":"address","name":"owner"},{"type":"address","name":"spender"}],
   "stateMutability":"view","type":"function"},
  {"name":"approve","outputs":[{"type":"bool"}],
   "inputs":[{"type":"address","name":"spender"},{"type":"uint256","name":"amount"}],
   "stateMutability":"nonpayable","type":"function"},
]

# UniswapV2-style router
ABI_ROUTER_V2 = [
  {"name":"getAmountsOut","outputs":[{"type":"uint256[]","name":"amounts"}],
   "inputs":[{"type":"uint256","name":"amountIn"},{"type":"address[]","name":"path"}],
   "stateMutability":"view","type":"function"},
  {"name":"swapExactTokensForTokens","outputs":[{"type":"uint256[]","name":"amounts"}],
   "inputs":[
      {"type":"uint256","name":"amountIn"},
      {"type":"uint256","name":"amountOutMin"},
      {"type":"address[]","name":"path"},
      {"type":"address","name":"to"},
      {"type":"uint256","name":"deadline"}],
   "stateMutability":"nonpayable","type":"function"},
]


class Chain:
    """
    Read handles and call builders for one router + its ERC20 tokens.
    Writes are returned as ContractFunction objects; TxService signs and sends them.
    """

    def __init__(self, w3: Web3, router_addr: str):
        self.w3 = w3
        self.router_address = Web3.to_checksum_address(router_addr)
        self.router = self.w3.eth.contract(address=self.router_address, abi=ABI_ROUTER_V2)

    @classmethod
    def from_rpc(cls, rpc_url: str, router_addr: str, timeout: float = 30) -> "Chain":
        w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))
        return cls(w3, router_addr)

    def erc20(self, addr: str):
        return self.w3.eth.contract(address=Web3.to_checksum_address(addr), abi=ABI_ERC20)

    # -------- basic reads --------

    def decimals(self, token: str) -> int:
        return int(self.erc20(token).functions.decimals().call())

    def symbol(self, token: str) -> str:
        # symbol() is optional in ERC20; some tokens revert or return bytes32
        try:
            return str(self.erc20(token).functions.symbol().call())
        except (ContractLogicError, BadFunctionCallOutput, OverflowError, UnicodeDecodeError):
            return ""

    def token(self, addr: str) -> Token:
        a = Web3.to_checksum_address(addr)
        return Token(address=a, decimals=self.decimals(a), symbol=self.symbol(a))

    def balance_of(self, token: str, owner: str) -> int:
        return int(self.erc20(token).functions.balanceOf(Web3.to_checksum_address(owner)).call())

    def allowance(self, token: str, owner: str, spender: str) -> int:
        fn = self.erc20(token).functions.allowance(
            Web3.to_checksum_address(owner), Web3.to_checksum_address(spender))
        return int(fn.call())

    def get_amounts_out(self, amount_in: int, path: Sequence[str]) -> Optional[List[int]]:
        cs_path = [Web3.to_checksum_address(p) for p in path]
        amounts = self.router.functions.getAmountsOut(int(amount_in), cs_path).call()
        return [int(a) for a in amounts] if amounts is not None else None

    # -------- write builders --------

    def fn_approve(self, token: str, spender: str, amount: int):
        """approve() sets an absolute allowance, so repeating it is harmless."""
        return self.erc20(token).functions.approve(Web3.to_checksum_address(spender), int(amount))

    def fn_swap_exact_tokens_for_tokens(self, amount_in: int, min_out: int, path: Sequence[str], to: str, deadline: int):
        return self.router.functions.swapExactTokensForTokens(
            int(amount_in),
            int(min_out),
            [Web3.to_checksum_address(p) for p in path],
            Web3.to_checksum_address(to),
            int(deadline),
        )

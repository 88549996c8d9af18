from collections.abc import Mapping
from typing import Any, Optional

from hexbytes import HexBytes
from web3 import Web3


def to_json_safe(obj: Any) -> Any:
    """
    Recursively turn web3 receipts (AttributeDict, HexBytes, nested logs)
    into plain JSON primitives so they can be logged or sent as text.
    """
    if isinstance(obj, HexBytes):
        return Web3.to_hex(obj)
    if isinstance(obj, (bytes, bytearray)):
        return "0x" + bytes(obj).hex()
    if isinstance(obj, (str, int, float, bool)) or obj is None:
        return obj
    # AttributeDict is a Mapping, not a dict
    if isinstance(obj, Mapping):
        return {str(k): to_json_safe(v) for (k, v) in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [to_json_safe(v) for v in obj]
    return str(obj)


def tx_hash_hex(tx_hash: Any) -> str:
    """Normalize a hash returned by send_raw_transaction to a 0x-prefixed string."""
    if isinstance(tx_hash, str):
        return tx_hash if tx_hash.startswith("0x") else "0x" + tx_hash
    return Web3.to_hex(tx_hash)


def receipt_field(receipt: Optional[Mapping], key: str) -> Optional[int]:
    if not receipt or receipt.get(key) is None:
        return None
    return int(receipt[key])

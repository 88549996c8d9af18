"""
Lightweight Telegram notifier (HTTP only) for swap cycle results.
- send_text
- swap_succeeded / swap_failed format the message
Disabled silently when TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID are not set.
"""
from __future__ import annotations
import json
import requests
from typing import Optional, Dict, Any

from swapbot.domain.models import SwapOutcome
from swapbot.utils.log import log_info, log_warn
from swapbot.utils.units import to_human


class TelegramNotifier:
    def __init__(self, token: Optional[str] = None, chat_id: Optional[str] = None, timeout: int = 10):
        self.token = token or ""
        self.chat_id = chat_id or ""
        self.timeout = timeout
        self.enabled = bool(self.token and self.chat_id)
        if not self.enabled:
            log_info("Telegram not configured (missing TELEGRAM_BOT_TOKEN or TELEGRAM_CHAT_ID). Notifications off.")
        self._base = f"https://api.telegram.org/bot{self.token}"

    def _post(self, method: str, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if not self.enabled:
            return None
        try:
            r = requests.post(f"{self._base}/{method}", json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            log_warn(f"[TELEGRAM] error: {e}")
            return None
        if r.status_code != 200:
            log_warn(f"[TELEGRAM] HTTP {r.status_code}: {r.text[:300]}")
            return None
        try:
            data = r.json()
        except ValueError:
            log_warn(f"[TELEGRAM] non-JSON response: {r.text[:300]}")
            return None
        if not data.get("ok"):
            log_warn(f"[TELEGRAM] API not ok: {json.dumps(data)[:300]}")
            return None
        return data

    def send_text(self, msg: str) -> Optional[int]:
        if not self.enabled:
            return None
        payload = {
            "chat_id": self.chat_id,
            "text": msg,
            "disable_web_page_preview": True,
        }
        resp = self._post("sendMessage", payload)
        if resp and "result" in resp:
            return resp["result"].get("message_id")
        return None

    # ---------- cycle hooks (Scheduler on_result / on_error) ----------

    def swap_succeeded(self, n: int, outcome: SwapOutcome) -> Optional[int]:
        return self.send_text(format_outcome(outcome, n))

    def swap_failed(self, n: int, err: BaseException) -> Optional[int]:
        return self.send_text(f"[swap #{n}] FAILED {type(err).__name__}: {err}")


def format_outcome(o: SwapOutcome, n: Optional[int] = None) -> str:
    tin, tout = o.token_in, o.token_out
    head = f"[swap #{n}] " if n is not None else ""
    lines = [
        f"{head}{'confirmed' if o.confirmed else 'NOT confirmed'} tx={o.tx_hash}",
        f"in:  {to_human(o.amount_in, tin.decimals)} {tin.label} (min out {to_human(o.min_out, tout.decimals)} {tout.label})",
        f"{tin.label}: {to_human(o.balance_in.before, tin.decimals)} -> {to_human(o.balance_in.after, tin.decimals)} "
        f"({to_human(o.balance_in.delta, tin.decimals)})",
        f"{tout.label}: {to_human(o.balance_out.before, tout.decimals)} -> {to_human(o.balance_out.after, tout.decimals)} "
        f"({to_human(o.balance_out.delta, tout.decimals)})",
    ]
    return "\n".join(lines)

"""
RPC Failover Manager
====================
Manages a pool of RPC providers with error tracking and failover.
"""

import time
import requests
from typing import Any, List, Dict

from config.settings import Settings
from rentguard.shared.errors import LedgerUnavailableError
from rentguard.shared.system.logging import Logger


class RpcConnectionManager:
    """
    Manages RPC connection lifecycle, health tracking, and failover.
    """

    def __init__(self, rpc_urls: List[str] = None, timeout: int = 10):
        self.rpc_urls = rpc_urls or Settings.rpc_urls()

        # Deduplicate and filter empty
        self.rpc_urls = list(dict.fromkeys([u for u in self.rpc_urls if u]))
        if not self.rpc_urls:
            raise ValueError("RpcConnectionManager needs at least one RPC URL")

        self.timeout = timeout
        self.current_index = 0
        self._request_id = 0
        self.stats: Dict[str, Dict] = {
            url: {
                "success": 0,
                "errors": 0,
                "avg_latency": 0.0,
                "last_error_time": 0,
            }
            for url in self.rpc_urls
        }

        Logger.debug(f"[RPC] Manager initialized with {len(self.rpc_urls)} providers")

    def get_active_url(self) -> str:
        return self.rpc_urls[self.current_index]

    def post(self, payload: dict, timeout: int = None) -> requests.Response:
        """
        Execute POST request with metrics tracking and failover on hard failure.
        """
        url = self.get_active_url()
        start = time.time()

        try:
            response = requests.post(url, json=payload, timeout=timeout or self.timeout)

            latency = (time.time() - start) * 1000
            self._record_success(url, latency)

            # Soft failures degrade the score; the caller decides what to do
            if response.status_code == 429 or response.status_code >= 500:
                self._record_error(url, f"HTTP {response.status_code}")

            return response

        except requests.RequestException as e:
            self._record_error(url, str(e))
            # Switch for the NEXT call; this one still fails
            self.switch_provider(reason=f"Network Error: {e}")
            raise

    def call(self, method: str, params: list = None) -> Any:
        """
        JSON-RPC call returning `result`.

        Raises:
            LedgerUnavailableError: on network errors, non-200 responses,
                or a JSON-RPC `error` body.
        """
        self._request_id += 1
        payload = {"jsonrpc": "2.0", "id": self._request_id, "method": method, "params": params or []}

        try:
            response = self.post(payload)
        except requests.RequestException as e:
            raise LedgerUnavailableError(f"{method} failed: {e}") from e

        if response.status_code != 200:
            if response.status_code == 429:
                self.switch_provider(reason="Rate limited")
            raise LedgerUnavailableError(f"{method} failed: HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as e:
            raise LedgerUnavailableError(f"{method} returned non-JSON body") from e

        if body.get("error"):
            raise LedgerUnavailableError(f"{method} RPC error: {body['error']}")

        return body.get("result")

    def _record_success(self, url: str, latency: float):
        s = self.stats[url]
        s["success"] += 1
        # Exponential moving average for latency
        if s["avg_latency"] == 0:
            s["avg_latency"] = latency
        else:
            s["avg_latency"] = 0.9 * s["avg_latency"] + 0.1 * latency

    def _record_error(self, url: str, error_msg: str):
        s = self.stats[url]
        s["errors"] += 1
        s["last_error_time"] = time.time()
        Logger.debug(f"[RPC] {url}: {error_msg}")

    def switch_provider(self, reason: str = "Unknown"):
        """Force rotation to next provider."""
        if len(self.rpc_urls) < 2:
            return
        old_url = self.get_active_url()
        self.current_index = (self.current_index + 1) % len(self.rpc_urls)
        new_url = self.get_active_url()

        Logger.warning(
            f"[RPC] Switching Provider: {old_url} -> {new_url} (Reason: {reason})"
        )

    def get_stats(self):
        return {"active_provider": self.get_active_url(), "providers": self.stats}

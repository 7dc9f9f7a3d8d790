"""Client for the token VM JSON-RPC service."""

from __future__ import annotations

import base64
import itertools
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional

import requests

from .encoding import encode_id
from .errors import AssetNotFoundError, TokenVMError, TxNotFoundError
from .server import JSONRPC_ENDPOINT

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TxStatus:
    """Outcome of an accepted transaction."""

    success: bool
    timestamp: int
    units: int


@dataclass(frozen=True)
class AssetInfo:
    """Description of an asset as reported by a node."""

    metadata: bytes
    supply: int
    owner: str
    warp: bool


class JSONRPCClient:
    """Queries a token VM node over JSON-RPC."""

    def __init__(
        self,
        uri: str,
        chain_id: bytes,
        *,
        namespace: str,
        poll_interval: float = 1.0,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.endpoint = uri.removesuffix("/") + JSONRPC_ENDPOINT
        self.chain_id = bytes(chain_id)
        self.namespace = namespace
        self.poll_interval = poll_interval
        self.timeout = timeout
        self._session = session or requests.Session()
        self._ids = itertools.count(1)
        self._genesis: Any = None

    def _request(self, method: str, params: Optional[dict[str, Any]]) -> dict[str, Any]:
        payload = {
            "jsonrpc": "2.0",
            "method": f"{self.namespace}.{method}",
            "params": params,
            "id": next(self._ids),
        }
        response = self._session.post(self.endpoint, json=payload)
        try:
            body = response.json()
        except ValueError:
            response.raise_for_status()
            raise TokenVMError("invalid JSON-RPC response") from None
        if isinstance(body, dict) and body.get("error") is not None:
            error = body["error"]
            message = error.get("message") if isinstance(error, dict) else error
            raise TokenVMError(str(message))
        response.raise_for_status()
        if not isinstance(body, dict):
            raise TokenVMError("invalid JSON-RPC response")
        return body.get("result") or {}

    def genesis(self) -> Any:
        """Return the chain genesis, fetching it only once."""
        if self._genesis is None:
            self._genesis = self._request("genesis", None).get("genesis")
        return self._genesis

    def tx(self, tx_id: bytes) -> Optional[TxStatus]:
        """Return the outcome of a transaction, or None if the node does not know it."""
        try:
            result = self._request("tx", {"txId": encode_id(tx_id)})
        except TokenVMError as exc:
            if TxNotFoundError.message in str(exc):
                return None
            raise
        return TxStatus(
            success=bool(result.get("success", False)),
            timestamp=int(result.get("timestamp", 0)),
            units=int(result.get("units", 0)),
        )

    def asset(self, asset: bytes) -> Optional[AssetInfo]:
        """Return an asset description, or None if the asset does not exist."""
        try:
            result = self._request("asset", {"asset": encode_id(asset)})
        except TokenVMError as exc:
            if AssetNotFoundError.message in str(exc):
                return None
            raise
        return AssetInfo(
            metadata=base64.b64decode(result.get("metadata") or ""),
            supply=int(result.get("supply", 0)),
            owner=str(result.get("owner", "")),
            warp=bool(result.get("warp", False)),
        )

    def balance(self, addr: str, asset: bytes) -> int:
        """Return the balance of an address in an asset."""
        result = self._request("balance", {"address": addr, "asset": encode_id(asset)})
        return int(result.get("amount", 0))

    def orders(self, pair: str) -> list[Any]:
        """Return the open orders of a trading pair."""
        return list(self._request("orders", {"pair": pair}).get("orders") or [])

    def loan(self, asset: bytes, destination: bytes) -> int:
        """Return the amount of an asset loaned to a destination chain."""
        result = self._request(
            "loan", {"asset": encode_id(asset), "destination": encode_id(destination)}
        )
        return int(result.get("amount", 0))

    def _wait(self, check: Callable[[], bool]) -> None:
        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        while not check():
            if deadline is not None and time.monotonic() >= deadline:
                raise TimeoutError("condition not met before the timeout")
            time.sleep(self.poll_interval)

    def wait_for_balance(self, addr: str, asset: bytes, minimum: int) -> None:
        """Block until the balance of an address reaches ``minimum``."""

        def reached() -> bool:
            if self.balance(addr, asset) >= minimum:
                return True
            logger.info("waiting for %d balance: %s", minimum, addr)
            return False

        self._wait(reached)

    def wait_for_transaction(self, tx_id: bytes) -> bool:
        """Block until a transaction is accepted and return whether it succeeded."""
        found: list[TxStatus] = []

        def accepted() -> bool:
            status = self.tx(tx_id)
            if status is not None:
                found.append(status)
            return status is not None

        self._wait(accepted)
        return found[-1].success
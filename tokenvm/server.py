"""JSON-RPC service that answers token VM state queries."""

from __future__ import annotations

import base64
import dataclasses
import json
from collections.abc import Callable, Mapping
from typing import Any, Optional, Protocol, Union

from .encoding import ID_LEN, address, decode_id, encode_id, parse_address
from .errors import AssetNotFoundError, TxNotFoundError
from .storage import AssetRecord, TransactionRecord

JSONRPC_ENDPOINT = "/tokenapi"
ORDERS_TO_SEND = 128

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
SERVER_ERROR = -32000

EMPTY_ID = bytes(ID_LEN)

Args = Mapping[str, Any]
Reply = dict[str, Any]


class Controller(Protocol):
    """State access that the RPC service needs from the running VM."""

    def genesis(self) -> Any:
        """Return the genesis description as a JSON-compatible value."""

    def get_transaction(self, tx_id: bytes) -> Optional[TransactionRecord]:
        """Return the record of an accepted transaction, or None."""

    def get_asset_from_state(self, asset: bytes) -> Optional[AssetRecord]:
        """Return an asset from current state, or None."""

    def get_balance_from_state(self, public_key: bytes, asset: bytes) -> int:
        """Return the balance of an account in an asset."""

    def orders(self, pair: str, limit: int) -> list[Any]:
        """Return at most ``limit`` open orders for a trading pair."""

    def get_loan_from_state(self, asset: bytes, destination: bytes) -> int:
        """Return the amount of an asset loaned to a destination chain."""


def _to_json(value: Any) -> Any:
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, (list, tuple)):
        return [_to_json(item) for item in value]
    return value


def _id_arg(args: Args, key: str) -> bytes:
    value = args.get(key)
    if value is None:
        return EMPTY_ID
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return decode_id(value)


def _params(params: Any) -> Args:
    if params is None:
        return {}
    if isinstance(params, list):
        if len(params) != 1:
            raise ValueError("params must hold exactly one object")
        params = params[0]
    if not isinstance(params, Mapping):
        raise ValueError("params must be a JSON object")
    return params


def _error_response(request_id: Any, code: int, message: str) -> Reply:
    return {
        "jsonrpc": "2.0",
        "error": {"code": code, "message": message, "data": None},
        "id": request_id,
    }


class JSONRPCServer:
    """Serves genesis, transaction, asset, balance, order and loan queries."""

    def __init__(self, controller: Controller, hrp: str, namespace: str) -> None:
        self.controller = controller
        self.hrp = hrp
        self.namespace = namespace
        self._methods: dict[str, Callable[[Args], Reply]] = {
            "genesis": self.genesis,
            "tx": self.tx,
            "asset": self.asset,
            "balance": self.balance,
            "orders": self.orders,
            "loan": self.loan,
        }

    def genesis(self, args: Args) -> Reply:
        """Return the chain genesis."""
        return {"genesis": _to_json(self.controller.genesis())}

    def tx(self, args: Args) -> Reply:
        """Return the outcome of a transaction; raises TxNotFoundError if unknown."""
        record = self.controller.get_transaction(_id_arg(args, "txId"))
        if record is None:
            raise TxNotFoundError()
        return {"timestamp": record.timestamp, "success": record.success, "units": record.units}

    def asset(self, args: Args) -> Reply:
        """Return an asset description; raises AssetNotFoundError if unknown."""
        record = self.controller.get_asset_from_state(_id_arg(args, "asset"))
        if record is None:
            raise AssetNotFoundError()
        return {
            "metadata": base64.b64encode(record.metadata).decode("ascii"),
            "supply": record.supply,
            "owner": address(record.owner, self.hrp),
            "warp": record.warp,
        }

    def balance(self, args: Args) -> Reply:
        """Return the balance of an address in an asset."""
        public_key = parse_address(str(args.get("address", "")), self.hrp)
        amount = self.controller.get_balance_from_state(public_key, _id_arg(args, "asset"))
        return {"amount": amount}

    def orders(self, args: Args) -> Reply:
        """Return the open orders of a trading pair."""
        pair = str(args.get("pair", ""))
        return {"orders": _to_json(list(self.controller.orders(pair, ORDERS_TO_SEND)))}

    def loan(self, args: Args) -> Reply:
        """Return the amount of an asset loaned to a destination chain."""
        amount = self.controller.get_loan_from_state(
            _id_arg(args, "asset"), _id_arg(args, "destination")
        )
        return {"amount": amount}

    def handle(self, request: Union[Mapping[str, Any], str, bytes]) -> Reply:
        """Answer one JSON-RPC 2.0 request and return the response object."""
        if isinstance(request, (str, bytes, bytearray)):
            try:
                request = json.loads(request)
            except ValueError as exc:
                return _error_response(None, PARSE_ERROR, f"parse error: {exc}")
        if not isinstance(request, Mapping):
            return _error_response(None, INVALID_REQUEST, "request must be a JSON object")
        request_id = request.get("id")
        if request.get("jsonrpc") != "2.0":
            return _error_response(request_id, INVALID_REQUEST, "jsonrpc must be 2.0")
        method = request.get("method")
        if not isinstance(method, str):
            return _error_response(request_id, INVALID_REQUEST, "method must be a string")
        service, _, name = method.rpartition(".")
        handler = self._methods.get(name) if service == self.namespace else None
        if handler is None:
            return _error_response(request_id, METHOD_NOT_FOUND, f"method {method!r} not found")
        try:
            args = _params(request.get("params"))
        except ValueError as exc:
            return _error_response(request_id, INVALID_REQUEST, str(exc))
        try:
            result = handler(args)
        except Exception as exc:  # every failure is reported to the caller
            return _error_response(request_id, SERVER_ERROR, str(exc))
        return {"jsonrpc": "2.0", "result": result, "id": request_id}


__all__ = [
    "Controller",
    "EMPTY_ID",
    "JSONRPCServer",
    "JSONRPC_ENDPOINT",
    "ORDERS_TO_SEND",
    "encode_id",
]
import base64
import json
from dataclasses import dataclass

import pytest

from tokenvm import storage
from tokenvm.encoding import address, encode_id, parse_address
from tokenvm.errors import AssetNotFoundError, TxNotFoundError
from tokenvm.server import (
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    ORDERS_TO_SEND,
    PARSE_ERROR,
    SERVER_ERROR,
    JSONRPCServer,
)

HRP = "tok"
NAMESPACE = "tokenvm"
TX = bytes([1]) * 32
ASSET = bytes([2]) * 32
OWNER = bytes([3]) * 32
DEST = bytes([4]) * 32


@dataclass
class Order:
    id: str
    remaining: int


class StorageController:
    def __init__(self):
        self.meta = {}
        self.state = {}
        self.book = {}
        self.limits = []
        self.genesis_value = {"hrp": HRP}

    def _read(self, keys):
        return [self.state.get(k) for k in keys]

    def genesis(self):
        return self.genesis_value

    def get_transaction(self, tx_id):
        return storage.get_transaction(self.meta, tx_id)

    def get_asset_from_state(self, asset):
        return storage.get_asset_from_state(self._read, asset)

    def get_balance_from_state(self, public_key, asset):
        return storage.get_balance_from_state(self._read, public_key, asset)

    def orders(self, pair, limit):
        self.limits.append(limit)
        return self.book.get(pair, [])[:limit]

    def get_loan_from_state(self, asset, destination):
        return storage.get_loan_from_state(self._read, asset, destination)


@pytest.fixture
def controller():
    return StorageController()


@pytest.fixture
def server(controller):
    return JSONRPCServer(controller, hrp=HRP, namespace=NAMESPACE)


def request(method, params, request_id=1):
    return {"jsonrpc": "2.0", "method": f"{NAMESPACE}.{method}", "params": params, "id": request_id}


def test_genesis_passes_through(server, controller):
    assert server.genesis({}) == {"genesis": controller.genesis_value}


def test_tx_returns_stored_record(server, controller):
    storage.store_transaction(controller.meta, TX, 1_700_000_000, True, 472)
    assert server.tx({"txId": encode_id(TX)}) == {
        "timestamp": 1_700_000_000,
        "success": True,
        "units": 472,
    }


def test_tx_missing_raises(server):
    with pytest.raises(TxNotFoundError):
        server.tx({"txId": encode_id(TX)})


def test_tx_without_id_uses_empty_id(server, controller):
    storage.store_transaction(controller.meta, bytes(32), 5, False, 9)
    assert server.tx({}) == {"timestamp": 5, "success": False, "units": 9}


def test_tx_bad_id_raises(server):
    with pytest.raises(ValueError):
        server.tx({"txId": "not-an-id"})


def test_asset_reply(server, controller):
    storage.set_asset(controller.state, ASSET, b"coin", 10, OWNER, True)
    reply = server.asset({"asset": encode_id(ASSET)})
    assert base64.b64decode(reply["metadata"]) == b"coin"
    assert parse_address(reply["owner"], HRP) == OWNER
    assert reply["supply"] == 10
    assert reply["warp"] is True


def test_asset_missing_raises(server):
    with pytest.raises(AssetNotFoundError):
        server.asset({"asset": encode_id(ASSET)})


def test_balance_reply(server, controller):
    storage.set_balance(controller.state, OWNER, ASSET, 55)
    reply = server.balance({"address": address(OWNER, HRP), "asset": encode_id(ASSET)})
    assert reply == {"amount": 55}


def test_balance_unknown_account_is_zero(server):
    reply = server.balance({"address": address(OWNER, HRP), "asset": encode_id(ASSET)})
    assert reply == {"amount": 0}


@pytest.mark.parametrize("addr", ["garbage", address(OWNER, "other")])
def test_balance_bad_address_raises(server, addr):
    with pytest.raises(ValueError):
        server.balance({"address": addr, "asset": encode_id(ASSET)})


def test_orders_are_limited(server, controller):
    controller.book["a-b"] = [{"id": str(i)} for i in range(ORDERS_TO_SEND + 10)]
    reply = server.orders({"pair": "a-b"})
    assert len(reply["orders"]) == ORDERS_TO_SEND == 128
    assert controller.limits == [ORDERS_TO_SEND]


def test_orders_dataclasses_become_dicts(server, controller):
    controller.book["a-b"] = [Order(id="x", remaining=4)]
    assert server.orders({"pair": "a-b"}) == {"orders": [{"id": "x", "remaining": 4}]}


def test_loan_reply(server, controller):
    storage.set_loan(controller.state, ASSET, DEST, 110)
    reply = server.loan({"asset": encode_id(ASSET), "destination": encode_id(DEST)})
    assert reply == {"amount": 110}


def test_handle_success(server, controller):
    storage.set_loan(controller.state, ASSET, DEST, 7)
    response = server.handle(
        request("loan", {"asset": encode_id(ASSET), "destination": encode_id(DEST)}, 9)
    )
    assert response == {"jsonrpc": "2.0", "result": {"amount": 7}, "id": 9}


def test_handle_accepts_json_text_and_list_params(server, controller):
    storage.set_balance(controller.state, OWNER, ASSET, 3)
    body = json.dumps(
        request("balance", [{"address": address(OWNER, HRP), "asset": encode_id(ASSET)}])
    ).encode()
    assert server.handle(body)["result"] == {"amount": 3}


def test_handle_reports_not_found(server):
    response = server.handle(request("tx", {"txId": encode_id(TX)}, 4))
    assert response["id"] == 4
    assert response["error"]["code"] == SERVER_ERROR
    assert response["error"]["message"] == "tx not found"


@pytest.mark.parametrize("method", [f"{NAMESPACE}.nothing", "other.tx", "tx"])
def test_handle_unknown_method(server, method):
    response = server.handle({"jsonrpc": "2.0", "method": method, "params": {}, "id": 1})
    assert response["error"]["code"] == METHOD_NOT_FOUND


def test_handle_wrong_version(server):
    response = server.handle({"jsonrpc": "1.0", "method": f"{NAMESPACE}.tx", "id": 1})
    assert response["error"]["code"] == INVALID_REQUEST


def test_handle_bad_params(server):
    response = server.handle(request("tx", [1, 2]))
    assert response["error"]["code"] == INVALID_REQUEST


def test_handle_parse_error(server):
    response = server.handle("{not json")
    assert response["error"]["code"] == PARSE_ERROR
    assert response["id"] is None
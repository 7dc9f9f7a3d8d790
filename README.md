# tokenvm

Storage layout and JSON-RPC access for a token virtual machine: balances,
assets, orders, loans and transaction results kept in a key-value store, a
JSON-RPC request handler that answers queries about them, and a client for
that service.

## Installing

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## State storage

`tokenvm.storage` stores records under fixed one-byte key prefixes. All
integers are big-endian. A database is any mutable mapping from `bytes` to
`bytes`, such as a plain `dict`. Public keys and IDs are 32 bytes each.

```python
from tokenvm import storage

db = {}
owner = bytes(32)
asset = bytes(32)

storage.set_balance(db, owner, asset, 100)
storage.add_balance(db, owner, asset, 50)
storage.sub_balance(db, owner, asset, 150)   # reaching zero deletes the record
assert storage.get_balance(db, owner, asset) == 0
```

Balance and loan arithmetic is unsigned 64-bit. `add_balance`, `sub_balance`,
`add_loan` and `sub_loan` raise `tokenvm.errors.InvalidBalanceError` on
overflow, on going below zero, or on a negative amount. A balance or loan that
is not stored reads as 0.

- Transactions: `store_transaction(db, tx_id, timestamp, success, units)` and
  `get_transaction(db, tx_id)`, which returns a `TransactionRecord` or `None`.
- Assets: `set_asset(db, asset, metadata, supply, owner, warp)`,
  `get_asset(db, asset)` (an `AssetRecord` or `None`) and `delete_asset`.
- Orders: `set_order(db, tx_id, in_asset, in_tick, out_asset, out_tick,
  supply, owner)`, `get_order(db, order)` (an `OrderRecord` or `None`) and
  `delete_order`.
- Loans: `get_loan`, `set_loan`, `add_loan`, `sub_loan`.
- Keys: `prefix_tx_key`, `prefix_balance_key`, `prefix_asset_key`,
  `prefix_order_key`, `prefix_loan_key`, `height_key`,
  `incoming_warp_key_prefix` and `outgoing_warp_key_prefix`.

`get_balance_from_state`, `get_asset_from_state` and `get_loan_from_state`
read through a callable that takes a list of keys and returns one value per
key, `None` where the key is missing.

## Addresses and identifiers

`tokenvm.encoding.address(public_key, hrp)` formats a 32-byte public key as a
bech32 address with the given human-readable part, and
`parse_address(text, hrp)` turns it back into the key, raising `ValueError`
on a bad checksum, a different human-readable part or a wrong length.
`encode_id` and `decode_id` convert 32-byte IDs to and from cb58 text.

## JSON-RPC server

`tokenvm.server.JSONRPCServer(controller, hrp, namespace)` answers the
methods `genesis`, `tx`, `asset`, `balance`, `orders` and `loan`, called as
`<namespace>.<method>`. The controller is any object with the methods of the
`Controller` protocol. `handle(request)` takes a JSON-RPC 2.0 request (a dict
or its JSON text) and returns the response object:

```python
server = JSONRPCServer(controller, hrp="token", namespace="tokenvm")
reply = server.handle({
    "jsonrpc": "2.0",
    "method": "tokenvm.balance",
    "params": [{"address": addr, "asset": asset_text}],
    "id": 1,
})
```

IDs in parameters are cb58 text; a missing ID means the all-zero ID. Asset
metadata is returned base64 encoded and owners as addresses. `orders` returns
at most 128 orders. Unknown transactions and assets, and any other failure,
come back as a JSON-RPC error whose message says what went wrong.

## JSON-RPC client

`tokenvm.client.JSONRPCClient` posts requests to `<uri>/tokenapi`:

```python
from tokenvm.client import JSONRPCClient

cli = JSONRPCClient("http://localhost:9650/ext/bc/mychain", chain_id,
                    namespace="tokenvm", poll_interval=1.0, timeout=120)
status = cli.tx(tx_id)              # TxStatus, or None if unknown
info = cli.asset(asset_id)          # AssetInfo, or None if unknown
amount = cli.balance(addr, asset_id)
orders = cli.orders(pair)
loan = cli.loan(asset_id, destination)

cli.wait_for_balance(addr, asset_id, 1_000)
success = cli.wait_for_transaction(tx_id)
```

`genesis()` fetches the genesis once and caches it. Errors reported by the
server raise `tokenvm.errors.TokenVMError`. The `wait_for_*` methods poll
every `poll_interval` seconds and raise `TimeoutError` once `timeout` seconds
have passed; with no timeout they wait indefinitely.

## What this package does not do

It does not run a chain: there is no block building, transaction signing,
action execution or genesis definition. The server is a request handler
only; it does not listen on a network socket, so serving it over HTTP is left
to the application. The storage functions work on whatever mapping they are
given and do not persist anything themselves.
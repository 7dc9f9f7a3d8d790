"""Key layout and value encoding for token VM state.

Metadata database:
    0x0 | txID                  -> timestamp | success | units

State database:
    0x0 | owner | asset         -> balance
    0x1 | asset                 -> metadataLen | metadata | supply | owner | warp
    0x2 | txID                  -> in | inTick | out | outTick | remaining | owner
    0x3 | asset | destination   -> amount
    0x4                         -> height
    0x5 | sourceChain | msgID   -> incoming warp
    0x6 | txID                  -> outgoing warp

A database is any mutable mapping from bytes to bytes. A read-state
callable takes a sequence of keys and returns one value per key, with
``None`` for a key that is missing.
"""

from __future__ import annotations

import struct
from collections.abc import Callable, MutableMapping, Sequence
from dataclasses import dataclass
from typing import Optional

from .encoding import ID_LEN, PUBLIC_KEY_LEN, encode_id
from .errors import InvalidBalanceError

Database = MutableMapping[bytes, bytes]
ReadState = Callable[[Sequence[bytes]], Sequence[Optional[bytes]]]

TX_PREFIX = 0x0

BALANCE_PREFIX = 0x0
ASSET_PREFIX = 0x1
ORDER_PREFIX = 0x2
LOAN_PREFIX = 0x3
HEIGHT_PREFIX = 0x4
INCOMING_WARP_PREFIX = 0x5
OUTGOING_WARP_PREFIX = 0x6

FAILURE_BYTE = 0x0
SUCCESS_BYTE = 0x1

MAX_UINT64 = 2**64 - 1

_TX_VALUE = struct.Struct(">qBQ")
_UINT64 = struct.Struct(">Q")
_UINT16 = struct.Struct(">H")
_ORDER_VALUE = struct.Struct(f">{ID_LEN}sQ{ID_LEN}sQQ{PUBLIC_KEY_LEN}s")
_ASSET_TAIL = struct.Struct(f">Q{PUBLIC_KEY_LEN}sB")

_HEIGHT_KEY = bytes([HEIGHT_PREFIX])


@dataclass(frozen=True)
class TransactionRecord:
    """Outcome of a transaction stored in the metadata database."""

    timestamp: int
    success: bool
    units: int


@dataclass(frozen=True)
class AssetRecord:
    """Stored description of an asset."""

    metadata: bytes
    supply: int
    owner: bytes
    warp: bool


@dataclass(frozen=True)
class OrderRecord:
    """Stored state of an open order."""

    in_asset: bytes
    in_tick: int
    out_asset: bytes
    out_tick: int
    remaining: int
    owner: bytes


def _fixed(value: bytes, length: int, what: str) -> bytes:
    raw = bytes(value)
    if len(raw) != length:
        raise ValueError(f"{what} must be {length} bytes, got {len(raw)}")
    return raw


def _id(value: bytes) -> bytes:
    return _fixed(value, ID_LEN, "ID")


def _public_key(value: bytes) -> bytes:
    return _fixed(value, PUBLIC_KEY_LEN, "public key")


def _pack_uint64(value: int) -> bytes:
    if not 0 <= value <= MAX_UINT64:
        raise ValueError(f"{value} does not fit in an unsigned 64-bit integer")
    return _UINT64.pack(value)


def _unpack_uint64(value: Optional[bytes]) -> int:
    if value is None:
        return 0
    return _UINT64.unpack_from(value)[0]


def _read_one(read_state: ReadState, key: bytes) -> Optional[bytes]:
    return read_state([key])[0]


def _hex(public_key: bytes) -> str:
    return public_key.hex()


# Transactions


def prefix_tx_key(tx_id: bytes) -> bytes:
    """Key of a transaction record: [txPrefix] + [txID]."""
    return bytes([TX_PREFIX]) + _id(tx_id)


def store_transaction(
    db: Database, tx_id: bytes, timestamp: int, success: bool, units: int
) -> None:
    """Record the timestamp, outcome and units used by a transaction."""
    if not -(2**63) <= timestamp < 2**63:
        raise ValueError(f"timestamp {timestamp} does not fit in a signed 64-bit integer")
    if not 0 <= units <= MAX_UINT64:
        raise ValueError(f"units {units} does not fit in an unsigned 64-bit integer")
    flag = SUCCESS_BYTE if success else FAILURE_BYTE
    db[prefix_tx_key(tx_id)] = _TX_VALUE.pack(timestamp, flag, units)


def get_transaction(db: Database, tx_id: bytes) -> Optional[TransactionRecord]:
    """Return the stored transaction record, or None if it is unknown."""
    value = db.get(prefix_tx_key(tx_id))
    if value is None:
        return None
    timestamp, flag, units = _TX_VALUE.unpack_from(value)
    return TransactionRecord(timestamp=timestamp, success=flag != FAILURE_BYTE, units=units)


# Balances


def prefix_balance_key(public_key: bytes, asset: bytes) -> bytes:
    """Key of a balance: [balancePrefix] + [address] + [asset]."""
    return bytes([BALANCE_PREFIX]) + _public_key(public_key) + _id(asset)


def get_balance(db: Database, public_key: bytes, asset: bytes) -> int:
    """Return the balance of an account in an asset; 0 if none is stored."""
    return _unpack_uint64(db.get(prefix_balance_key(public_key, asset)))


def get_balance_from_state(read_state: ReadState, public_key: bytes, asset: bytes) -> int:
    """Return a balance through a read-state callable, as used to serve queries."""
    return _unpack_uint64(_read_one(read_state, prefix_balance_key(public_key, asset)))


def set_balance(db: Database, public_key: bytes, asset: bytes, balance: int) -> None:
    """Store a balance."""
    db[prefix_balance_key(public_key, asset)] = _pack_uint64(balance)


def delete_balance(db: Database, public_key: bytes, asset: bytes) -> None:
    """Remove a balance record."""
    db.pop(prefix_balance_key(public_key, asset), None)


def add_balance(db: Database, public_key: bytes, asset: bytes, amount: int) -> None:
    """Increase a balance, raising InvalidBalanceError on overflow."""
    key = prefix_balance_key(public_key, asset)
    balance = _unpack_uint64(db.get(key))
    new_balance = balance + amount
    if amount < 0 or new_balance > MAX_UINT64:
        raise InvalidBalanceError(
            f"could not add balance (asset={encode_id(asset)}, bal={balance}, "
            f"addr={_hex(public_key)}, amount={amount})"
        )
    db[key] = _pack_uint64(new_balance)


def sub_balance(db: Database, public_key: bytes, asset: bytes, amount: int) -> None:
    """Decrease a balance, deleting the record when it reaches zero.

    Raises InvalidBalanceError if the balance is smaller than the amount.
    """
    key = prefix_balance_key(public_key, asset)
    balance = _unpack_uint64(db.get(key))
    if amount < 0 or amount > balance:
        raise InvalidBalanceError(
            f"could not subtract balance (asset={encode_id(asset)}, bal={balance}, "
            f"addr={_hex(public_key)}, amount={amount})"
        )
    new_balance = balance - amount
    if new_balance == 0:
        db.pop(key, None)
        return
    db[key] = _pack_uint64(new_balance)


# Assets


def prefix_asset_key(asset: bytes) -> bytes:
    """Key of an asset: [assetPrefix] + [asset]."""
    return bytes([ASSET_PREFIX]) + _id(asset)


def _decode_asset(value: Optional[bytes]) -> Optional[AssetRecord]:
    if value is None:
        return None
    (metadata_len,) = _UINT16.unpack_from(value)
    start = _UINT16.size
    metadata = bytes(value[start : start + metadata_len])
    supply, owner, warp = _ASSET_TAIL.unpack_from(value, start + metadata_len)
    return AssetRecord(metadata=metadata, supply=supply, owner=owner, warp=warp == 0x1)


def get_asset_from_state(read_state: ReadState, asset: bytes) -> Optional[AssetRecord]:
    """Return an asset through a read-state callable, or None if it is unknown."""
    return _decode_asset(_read_one(read_state, prefix_asset_key(asset)))


def get_asset(db: Database, asset: bytes) -> Optional[AssetRecord]:
    """Return a stored asset, or None if it is unknown."""
    return _decode_asset(db.get(prefix_asset_key(asset)))


def set_asset(
    db: Database,
    asset: bytes,
    metadata: bytes,
    supply: int,
    owner: bytes,
    warp: bool,
) -> None:
    """Store an asset description."""
    metadata = bytes(metadata)
    if len(metadata) > 0xFFFF:
        raise ValueError(f"metadata of {len(metadata)} bytes is too long")
    if not 0 <= supply <= MAX_UINT64:
        raise ValueError(f"supply {supply} does not fit in an unsigned 64-bit integer")
    db[prefix_asset_key(asset)] = (
        _UINT16.pack(len(metadata))
        + metadata
        + _ASSET_TAIL.pack(supply, _public_key(owner), 0x1 if warp else 0x0)
    )


def delete_asset(db: Database, asset: bytes) -> None:
    """Remove an asset record."""
    db.pop(prefix_asset_key(asset), None)


# Orders


def prefix_order_key(tx_id: bytes) -> bytes:
    """Key of an order: [orderPrefix] + [txID]."""
    return bytes([ORDER_PREFIX]) + _id(tx_id)


def set_order(
    db: Database,
    tx_id: bytes,
    in_asset: bytes,
    in_tick: int,
    out_asset: bytes,
    out_tick: int,
    supply: int,
    owner: bytes,
) -> None:
    """Store an order."""
    for name, number in (("in_tick", in_tick), ("out_tick", out_tick), ("supply", supply)):
        if not 0 <= number <= MAX_UINT64:
            raise ValueError(f"{name} {number} does not fit in an unsigned 64-bit integer")
    db[prefix_order_key(tx_id)] = _ORDER_VALUE.pack(
        _id(in_asset), in_tick, _id(out_asset), out_tick, supply, _public_key(owner)
    )


def get_order(db: Database, order: bytes) -> Optional[OrderRecord]:
    """Return a stored order, or None if it is unknown."""
    value = db.get(prefix_order_key(order))
    if value is None:
        return None
    in_asset, in_tick, out_asset, out_tick, remaining, owner = _ORDER_VALUE.unpack_from(value)
    return OrderRecord(
        in_asset=in_asset,
        in_tick=in_tick,
        out_asset=out_asset,
        out_tick=out_tick,
        remaining=remaining,
        owner=owner,
    )


def delete_order(db: Database, order: bytes) -> None:
    """Remove an order record."""
    db.pop(prefix_order_key(order), None)


# Loans


def prefix_loan_key(asset: bytes, destination: bytes) -> bytes:
    """Key of a loan: [loanPrefix] + [asset] + [destination]."""
    return bytes([LOAN_PREFIX]) + _id(asset) + _id(destination)


def get_loan_from_state(read_state: ReadState, asset: bytes, destination: bytes) -> int:
    """Return a loan amount through a read-state callable; 0 if none is stored."""
    return _unpack_uint64(_read_one(read_state, prefix_loan_key(asset, destination)))


def get_loan(db: Database, asset: bytes, destination: bytes) -> int:
    """Return the amount loaned of an asset to a destination chain."""
    return _unpack_uint64(db.get(prefix_loan_key(asset, destination)))


def set_loan(db: Database, asset: bytes, destination: bytes, amount: int) -> None:
    """Store a loan amount."""
    db[prefix_loan_key(asset, destination)] = _pack_uint64(amount)


def add_loan(db: Database, asset: bytes, destination: bytes, amount: int) -> None:
    """Increase a loan, raising InvalidBalanceError on overflow."""
    loan = get_loan(db, asset, destination)
    new_loan = loan + amount
    if amount < 0 or new_loan > MAX_UINT64:
        raise InvalidBalanceError(
            f"could not add loan (asset={encode_id(asset)}, "
            f"destination={encode_id(destination)}, amount={amount})"
        )
    set_loan(db, asset, destination, new_loan)


def sub_loan(db: Database, asset: bytes, destination: bytes, amount: int) -> None:
    """Decrease a loan, deleting the record when it reaches zero."""
    loan = get_loan(db, asset, destination)
    if amount < 0 or amount > loan:
        raise InvalidBalanceError(
            f"could not subtract loan (asset={encode_id(asset)}, "
            f"destination={encode_id(destination)}, amount={amount})"
        )
    new_loan = loan - amount
    if new_loan == 0:
        db.pop(prefix_loan_key(asset, destination), None)
        return
    set_loan(db, asset, destination, new_loan)


# Other keys


def height_key() -> bytes:
    """Key under which the chain height is stored."""
    return _HEIGHT_KEY


def incoming_warp_key_prefix(source_chain_id: bytes, msg_id: bytes) -> bytes:
    """Key of an incoming warp message: [prefix] + [sourceChainID] + [msgID]."""
    return bytes([INCOMING_WARP_PREFIX]) + _id(source_chain_id) + _id(msg_id)


def outgoing_warp_key_prefix(tx_id: bytes) -> bytes:
    """Key of an outgoing warp message: [prefix] + [txID]."""
    return bytes([OUTGOING_WARP_PREFIX]) + _id(tx_id)
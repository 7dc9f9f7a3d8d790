"""Exception types raised by the token VM storage and RPC layers."""

from __future__ import annotations


class TokenVMError(Exception):
    """Base class for token VM errors.

    Each subclass carries a fixed message; an optional detail is appended
    after a colon.
    """

    message = "tokenvm error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail
        text = self.message if detail is None else f"{self.message}: {detail}"
        super().__init__(text)


class InvalidBalanceError(TokenVMError):
    """A balance or loan update would overflow or go below zero."""

    message = "invalid balance"


class TxNotFoundError(TokenVMError):
    """The requested transaction is not known."""

    message = "tx not found"


class AssetNotFoundError(TokenVMError):
    """The requested asset is not known."""

    message = "asset not found"
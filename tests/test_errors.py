import pytest

from tokenvm.errors import (
    AssetNotFoundError,
    InvalidBalanceError,
    TokenVMError,
    TxNotFoundError,
)


@pytest.mark.parametrize(
    ("cls", "text"),
    [
        (InvalidBalanceError, "invalid balance"),
        (TxNotFoundError, "tx not found"),
        (AssetNotFoundError, "asset not found"),
    ],
)
def test_default_messages(cls, text):
    assert str(cls()) == text


@pytest.mark.parametrize("cls", [InvalidBalanceError, TxNotFoundError, AssetNotFoundError])
def test_subclasses_of_base(cls):
    with pytest.raises(TokenVMError) as excinfo:
        raise cls("context")
    assert excinfo.value.detail == "context"
    assert str(excinfo.value) == f"{cls.message}: context"


def test_detail_is_appended():
    err = InvalidBalanceError("could not add balance")
    assert str(err) == "invalid balance: could not add balance"
    assert err.detail == "could not add balance"


def test_message_is_contained_in_detailed_error():
    err = TxNotFoundError("lookup failed")
    assert TxNotFoundError.message in str(err)
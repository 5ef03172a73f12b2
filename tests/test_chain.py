from decimal import Decimal

from stakefarm.helpers import ReceiptSummary
from stakefarm.helpers.chain_helper import from_smallest_unit, to_smallest_unit
from stakefarm.models import FarmSettings

from conftest import WALLET

CONTRACT = FarmSettings().contract_address
STRANGER = "0x" + "33" * 20


def receipt(status=1, sender=WALLET, target=CONTRACT):
    return ReceiptSummary.from_raw({"status": status, "from": sender, "to": target})


def test_receipt_from_linked_wallet_to_contract_is_accepted():
    summary = receipt(sender=WALLET.lower())

    assert summary.succeeded
    assert summary.mismatch(WALLET, CONTRACT) is None


def test_reverted_receipt_still_belongs_to_the_batch():
    summary = receipt(status=0)

    assert not summary.succeeded
    assert summary.mismatch(WALLET, CONTRACT) is None


def test_receipt_from_another_wallet_is_refused():
    assert "linked wallet" in receipt(sender=STRANGER).mismatch(WALLET, CONTRACT)


def test_receipt_to_another_contract_is_refused():
    assert "farm contract" in receipt(target=STRANGER).mismatch(WALLET, CONTRACT)
    assert receipt(target=None).mismatch(WALLET, CONTRACT) is not None


def test_receipt_without_linked_wallet_is_refused():
    assert receipt().mismatch(None, CONTRACT) is not None


def test_large_amounts_convert_exactly():
    amount = Decimal("12345678901234567890.123456789012345678")

    assert to_smallest_unit(amount, 18) == 12345678901234567890123456789012345678
    assert from_smallest_unit(10 ** 40 + 1, 18) == Decimal("10000000000000000000000.000000000000000001")


def test_sub_unit_dust_is_truncated():
    assert to_smallest_unit(Decimal("0.0000000000000000019"), 18) == 1
    assert to_smallest_unit(Decimal("99999999999999999999999999.9999999999999999999"), 18) == \
        99999999999999999999999999999999999999999999

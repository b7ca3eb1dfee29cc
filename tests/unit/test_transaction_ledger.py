"""
Unit Tests for TransactionLedger
"""

from datetime import date
from decimal import Decimal

import pytest

from mf_engine.domain.errors import DependencyError, ErrorKind, NotFoundError
from mf_engine.domain.models import (
    TransactionDraft,
    TransactionPatch,
    TransactionSide,
    TransactionSubtype,
)
from mf_engine.domain.services.transaction_ledger import TransactionLedger
from mf_engine.infrastructure.repositories.memory_ledger_store import InMemoryLedgerStore

TODAY = date(2026, 1, 15)


class FailingLedgerStore(InMemoryLedgerStore):
    """Store whose appends blow up"""

    def append_batch(self, transactions):
        raise RuntimeError("disk full")


class UndeletableLedgerStore(InMemoryLedgerStore):
    def delete_batch(self, transaction_ids):
        raise RuntimeError("read-only replica")


def buy_draft(units="10", price="100", fund_code="F1", **kwargs):
    return TransactionDraft(
        portfolio_id="P1",
        fund_code=fund_code,
        trade_date=TODAY,
        side=TransactionSide.BUY,
        subtype=TransactionSubtype.LUMPSUM,
        units=Decimal(units),
        price_per_unit=Decimal(price),
        **kwargs,
    )


def sell_draft(units="5", price="300", avg="150", fund_code="F1"):
    return TransactionDraft(
        portfolio_id="P1",
        fund_code=fund_code,
        trade_date=TODAY,
        side=TransactionSide.SELL,
        subtype=TransactionSubtype.WITHDRAWAL,
        units=Decimal(units),
        price_per_unit=Decimal(price),
        avg_cost_at_sale=Decimal(avg) if avg is not None else None,
    )


def test_build_quantizes_units_and_total(ledger):
    row = ledger.build(buy_draft(units="10.123456", price="100"))

    assert row.id.startswith("TXN-")
    assert row.units == Decimal("10.1235")
    assert row.total_amount == Decimal("1012.35")
    assert row.realized_gain_loss == Decimal("0")


def test_build_rounds_nav_to_four_places(ledger):
    row = ledger.build(buy_draft(units="1000", price="10.12345"))

    assert row.price_per_unit == Decimal("10.1235")
    assert row.total_amount == Decimal("10123.50")
    assert row.total_amount == (row.units * row.price_per_unit).quantize(Decimal("0.01"))


def test_sell_gain_uses_rounded_nav(ledger):
    row = ledger.build(sell_draft(units="100", price="12.00005", avg="10"))

    assert row.price_per_unit == Decimal("12.0001")
    assert row.realized_gain_loss == Decimal("200.01")


def test_sell_books_gain_against_average_cost(ledger):
    row = ledger.build(sell_draft(units="5", price="300", avg="150"))

    assert row.realized_gain_loss == Decimal("750.00")
    assert row.total_amount == Decimal("1500.00")


def test_sell_loss_is_negative(ledger):
    row = ledger.build(sell_draft(units="4", price="90", avg="100"))
    assert row.realized_gain_loss == Decimal("-40.00")


def test_sell_without_average_cost_is_a_programming_error(ledger):
    with pytest.raises(ValueError):
        ledger.build(sell_draft(avg=None))


def test_append_many_keeps_order(ledger, ledger_store):
    ids = ledger.append_many([buy_draft(fund_code="F1"), buy_draft(fund_code="F2")])

    assert len(ids) == 2
    assert [r.id for r in ledger_store.list_for("P1")] == ids


def test_failed_append_surfaces_dependency_error():
    store = FailingLedgerStore()
    ledger = TransactionLedger(store)

    with pytest.raises(DependencyError) as exc_info:
        ledger.append_many([buy_draft(), buy_draft(fund_code="F2")])

    assert exc_info.value.kind == ErrorKind.LEDGER_WRITE_FAILED
    assert store.count() == 0


def test_get_unknown_transaction(ledger):
    with pytest.raises(NotFoundError) as exc_info:
        ledger.get("TXN-MISSING")
    assert exc_info.value.kind == ErrorKind.TRANSACTION_NOT_FOUND


def test_amend_sell_price_uses_original_cost_basis(ledger):
    sell_id = ledger.append(sell_draft(units="5", price="300", avg="150"))

    amended = ledger.amend(sell_id, TransactionPatch(price=Decimal("320")))

    assert amended.total_amount == Decimal("1600.00")
    assert amended.realized_gain_loss == Decimal("850.00")
    assert ledger.get(sell_id) == amended


def test_amend_sell_units_rescales_gain(ledger):
    sell_id = ledger.append(sell_draft(units="5", price="300", avg="150"))

    amended = ledger.amend(sell_id, TransactionPatch(units=Decimal("4")))

    assert amended.units == Decimal("4.0000")
    assert amended.total_amount == Decimal("1200.00")
    assert amended.realized_gain_loss == Decimal("600.00")


def test_amend_buy_keeps_zero_gain_and_notes(ledger):
    buy_id = ledger.append(buy_draft(units="10", price="100"))

    amended = ledger.amend(
        buy_id,
        TransactionPatch(trade_date=date(2026, 1, 2), price=Decimal("110"), notes="fixed NAV"),
    )

    assert amended.trade_date == date(2026, 1, 2)
    assert amended.total_amount == Decimal("1100.00")
    assert amended.realized_gain_loss == Decimal("0")
    assert amended.notes == "fixed NAV"


def test_amend_rounds_patched_price(ledger):
    buy_id = ledger.append(buy_draft(units="1000", price="10"))

    amended = ledger.amend(buy_id, TransactionPatch(price=Decimal("10.12345")))

    assert amended.price_per_unit == Decimal("10.1235")
    assert amended.total_amount == Decimal("10123.50")


def test_replace_writes_all_rows_or_none(ledger, ledger_store):
    first_id, second_id = ledger.append_many([buy_draft(fund_code="F1"), buy_draft(fund_code="F2")])
    first = ledger.amended(ledger.get(first_id), TransactionPatch(units=Decimal("20")))
    second = ledger.amended(ledger.get(second_id), TransactionPatch(units=Decimal("30")))

    assert ledger.replace(first, second) == [first, second]
    assert ledger.get(second_id).units == Decimal("30.0000")

    ghost = ledger.build(buy_draft(fund_code="F3"))
    with pytest.raises(DependencyError) as exc_info:
        ledger.replace(ledger.amended(first, TransactionPatch(units=Decimal("1"))), ghost)

    assert exc_info.value.details["operation"] == "amend"
    assert ledger.get(first_id).units == Decimal("20.0000")


def test_retraction_set_covers_switch_group(ledger):
    ids = ledger.append_many([
        TransactionDraft(
            portfolio_id="P1",
            fund_code="F1",
            trade_date=TODAY,
            side=TransactionSide.SELL,
            subtype=TransactionSubtype.SWITCH,
            units=Decimal("5"),
            price_per_unit=Decimal("10"),
            avg_cost_at_sale=Decimal("10"),
            switch_group_id="SWG-1",
        ),
        buy_draft(units="25", price="2", fund_code="F2", switch_group_id="SWG-1"),
    ])
    lone_id = ledger.append(buy_draft())

    assert {r.id for r in ledger.retraction_set(ids[1])} == set(ids)
    assert [r.id for r in ledger.retraction_set(lone_id)] == [lone_id]

    assert ledger.retract(ids[0]) == ids
    assert [r.id for r in ledger.list_for("P1")] == [lone_id]


def test_failed_retract_leaves_rows():
    ledger = TransactionLedger(UndeletableLedgerStore())
    row_id = ledger.append(buy_draft())

    with pytest.raises(DependencyError):
        ledger.retract(row_id)
    assert ledger.get(row_id).id == row_id

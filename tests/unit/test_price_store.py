from datetime import date
from decimal import Decimal

from mf_engine.infrastructure.market_data.price_store import PriceStore


def test_ath_only_rises():
    store = PriceStore()

    assert store.ingest_nav("F1", "100", date(2026, 1, 1)) is True
    assert store.ingest_nav("F1", "90", date(2026, 1, 2)) is False
    assert store.ath_table() == {"F1": Decimal("100")}
    assert store.current_prices() == {"F1": Decimal("90")}

    assert store.ingest_nav("F1", "110.5", date(2026, 1, 3)) is True
    assert store.ath_table()["F1"] == Decimal("110.5")
    assert store.get_last_nav("F1").as_of == date(2026, 1, 3)


def test_seeded_ath_is_respected():
    store = PriceStore(ath_seed={"F1": "168.50"})

    assert store.ingest_nav("F1", "142.35") is False
    assert store.ath_table(["F1", "F2"]) == {"F1": Decimal("168.50")}


def test_non_positive_navs_are_ignored():
    store = PriceStore()

    assert store.ingest_nav("F1", "0") is False
    assert store.ingest_nav("", "10") is False
    assert store.current_prices() == {}


def test_ingest_many_counts_new_highs_and_filters_snapshots():
    store = PriceStore(ath_seed={"F2": "50"})

    assert store.ingest_many({"F1": "10", "F2": "40", "F3": "5"}) == 2
    assert store.current_prices(["F1", "F2", "F9"]) == {"F1": Decimal("10"), "F2": Decimal("40")}

    status = store.get_status()
    assert status["F2"]["ath"] == 50.0
    assert status["F2"]["nav"] == 40.0

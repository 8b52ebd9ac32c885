"""Tests for offer repositories, filter composition and the filter list."""

from __future__ import annotations

import pytest

from dexstore.storage.db import DexStore
from dexstore.storage.exceptions import StatementError
from dexstore.storage.models import (
    ZERO_HASH,
    MyOffer,
    Offer,
    OfferFilter,
    OfferStatus,
    OfferType,
    OffersPeriod,
)
from dexstore.storage.offers import build_filter_clause


# --- Fixtures ---

@pytest.fixture
def store(tmp_path):
    handle = DexStore(str(tmp_path / "dex.db"))
    with handle:
        yield handle


def h(n: int) -> bytes:
    return n.to_bytes(32, "little")


def make_offer(
    n: int,
    version: int = 0,
    country: str = "US",
    currency: str = "USD",
    payment: int = 1,
    expires: int = 10_000,
    modified: int = 100,
) -> Offer:
    return Offer(
        id_transaction=h(1000 + n * 10 + version),
        hash=h(n),
        pub_key=f"pub{n}",
        country_iso=country,
        currency_iso=currency,
        payment_method=payment,
        price=100 * n,
        min_amount=n,
        time_create=modified,
        time_to_expiration=expires,
        time_modification=modified,
        short_info=f"offer {n}",
        details="details",
        editing_version=version,
        edit_sign=f"sig{version}",
    )


def make_my_offer(n: int, expires: int = 10_000, offer_type=OfferType.SELL, status=OfferStatus.ACTIVE):
    return MyOffer(make_offer(n, expires=expires), type=offer_type, status=status)


# --- Filter Composition ---

class TestFilterClause:
    def test_no_filters(self):
        assert build_filter_clause(None) == ("", {})
        assert build_filter_clause(OfferFilter()) == ("", {})

    def test_only_set_predicates(self):
        where, params = build_filter_clause(OfferFilter(country_iso="US", payment_method=128))
        assert where == " WHERE countryIso = :countryIso AND paymentMethod = :paymentMethod"
        assert params == {"countryIso": "US", "paymentMethod": 128}

    def test_ownership_predicates(self):
        filters = OfferFilter(offer_type=OfferType.BUY, status=OfferStatus.ACTIVE)
        assert build_filter_clause(filters) == ("", {})

        where, params = build_filter_clause(filters, with_ownership=True)
        assert where == " WHERE type = :type AND status = :status"
        assert params == {"type": 0, "status": 0}


# --- Broadcast Offers ---

class TestOfferVersions:
    def test_revisions_of_same_hash_coexist(self, store):
        store.offers_sell.add(make_offer(1, version=1))
        store.offers_sell.add(make_offer(1, version=2))
        assert store.offers_sell.count() == 2
        assert sorted(store.offers_sell.hashes_and_versions()) == [(h(1), 1), (h(1), 2)]

    def test_duplicate_revision_fails(self, store):
        store.offers_sell.add(make_offer(1, version=2))
        with pytest.raises(StatementError) as info:
            store.offers_sell.add(make_offer(1, version=2))
        assert info.value.table == "offersSell"
        assert info.value.operation == "add"
        assert info.value.code_name.startswith("SQLITE_CONSTRAINT")
        assert store.offers_sell.count() == 1

    def test_tables_are_independent(self, store):
        store.offers_sell.add(make_offer(1))
        store.offers_buy.add(make_offer(1))
        assert store.offers_sell.count() == 1
        assert store.offers_buy.count() == 1
        store.offers_buy.delete_by_hash(h(1))
        assert store.offers_sell.exists_by_hash(h(1))
        assert not store.offers_buy.exists_by_hash(h(1))


class TestOfferReads:
    def test_get_round_trip(self, store):
        offer = make_offer(4)
        store.offers_buy.add(offer)
        assert store.offers_buy.get(offer.id_transaction) == offer
        assert store.offers_buy.get_by_hash(h(4)) == offer

    def test_missing_row_is_zero_record(self, store):
        offer = store.offers_sell.get(h(9))
        assert offer == Offer()
        assert offer.is_empty()
        assert not store.offers_sell.exists(h(9))

    def test_stored_zero_record_exists(self, store):
        store.offers_sell.add(Offer())
        assert store.offers_sell.get(ZERO_HASH) == Offer()
        assert store.offers_sell.exists(ZERO_HASH)
        assert store.offers_sell.exists_by_hash(ZERO_HASH)

    def test_edit_rewrites_by_hash(self, store):
        store.offers_sell.add(make_offer(2))
        changed = make_offer(2)
        changed.price = 999
        changed.short_info = "updated"
        changed.id_transaction = h(5555)

        assert store.offers_sell.edit(changed) == 1
        stored = store.offers_sell.get_by_hash(h(2))
        assert stored.price == 999
        assert stored.short_info == "updated"
        # idTransaction is not rewritten for broadcast offers
        assert stored.id_transaction == make_offer(2).id_transaction

    def test_edit_missing_changes_nothing(self, store):
        assert store.offers_sell.edit(make_offer(3)) == 0

    def test_delete(self, store):
        offer = make_offer(6)
        store.offers_sell.add(offer)
        assert store.offers_sell.delete(offer.id_transaction) == 1
        assert not store.offers_sell.exists(offer.id_transaction)
        assert store.offers_sell.delete(offer.id_transaction) == 0


class TestExpiry:
    def test_delete_expired_is_inclusive(self, store):
        store.offers_sell.add(make_offer(1, expires=990))
        store.offers_sell.add(make_offer(2, expires=1000))
        store.offers_sell.add(make_offer(3, expires=1010))

        assert store.offers_sell.delete_expired(now=1000) == 2
        assert store.offers_sell.hashes() == [h(3)]

    def test_delete_expired_defaults_to_now(self, store):
        store.offers_buy.add(make_offer(1, expires=1))
        store.offers_buy.add(make_offer(2, expires=2 ** 40))
        assert store.offers_buy.delete_expired() == 1


class TestQueries:
    @pytest.fixture
    def populated(self, store):
        for n in range(1, 4):
            store.offers_sell.add(make_offer(n, country="US", currency="USD"))
        for n in range(4, 6):
            store.offers_sell.add(make_offer(n, country="DE", currency="EUR"))
        store.offers_sell.add(make_offer(6, country="US", currency="EUR", payment=128))
        return store.offers_sell

    def test_count_filters(self, populated):
        assert populated.count() == 6
        assert populated.count(OfferFilter(country_iso="US")) == 4
        assert populated.count(OfferFilter(country_iso="US", currency_iso="USD")) == 3
        assert populated.count(OfferFilter(currency_iso="EUR")) == 3
        assert populated.count(OfferFilter(payment_method=128)) == 1
        assert populated.count(OfferFilter(country_iso="FR")) == 0

    def test_list_filters(self, populated):
        offers = populated.list(OfferFilter(country_iso="DE"))
        assert sorted(o.hash for o in offers) == [h(4), h(5)]

    def test_ownership_filters_ignored_for_broadcast(self, populated):
        assert populated.count(OfferFilter(offer_type=OfferType.BUY)) == 6

    def test_pagination(self, populated):
        first = populated.list(limit=2)
        second = populated.list(limit=2, offset=2)
        assert len(first) == 2
        assert len(second) == 2
        assert not {o.hash for o in first} & {o.hash for o in second}

    def test_offset_without_limit_is_ignored(self, populated):
        assert len(populated.list(offset=4)) == 6
        assert len(populated.list(limit=10, offset=4)) == 2


class TestReconciliation:
    def test_last_modification(self, store):
        assert store.offers_buy.last_modification() == 0
        store.offers_buy.add(make_offer(1, modified=50))
        store.offers_buy.add(make_offer(2, modified=70))
        assert store.offers_buy.last_modification() == 70

    def test_period_restrictions(self, store):
        store.offers_buy.add(make_offer(1, modified=100))
        store.offers_buy.add(make_offer(2, modified=200))
        store.offers_buy.add(make_offer(3, modified=300))
        repo = store.offers_buy

        assert repo.hashes_and_versions(OffersPeriod.BEFORE, 200) == [(h(1), 0)]
        after = repo.hashes_and_versions(OffersPeriod.AFTER, 200)
        assert sorted(after) == [(h(2), 0), (h(3), 0)]
        assert len(repo.hashes_and_versions()) == 3

        assert repo.count_period(OffersPeriod.BEFORE, 200) == 1
        assert repo.count_period(OffersPeriod.AFTER, 200) == 2
        assert repo.count_period() == 3


# --- Own Offers ---

class TestMyOffers:
    def test_duplicate_hash_fails(self, store):
        store.my_offers.add(make_my_offer(1))
        with pytest.raises(StatementError):
            store.my_offers.add(make_my_offer(1))
        assert store.my_offers.count() == 1

    def test_round_trip(self, store):
        mine = make_my_offer(2, offer_type=OfferType.BUY, status=OfferStatus.DRAFT)
        store.my_offers.add(mine)
        assert store.my_offers.get_by_hash(h(2)) == mine
        assert store.my_offers.get(h(9)) == MyOffer()

    def test_every_status_round_trips(self, store):
        for n, status in enumerate(OfferStatus, start=1):
            store.my_offers.add(make_my_offer(n, offer_type=OfferType(n % 2), status=status))
            stored = store.my_offers.get_by_hash(h(n))
            assert stored.status == status
            assert stored.type == OfferType(n % 2)

    def test_unknown_status_is_rejected_before_write(self, store):
        with pytest.raises(ValueError):
            store.my_offers.add(make_my_offer(1, status=9))
        with pytest.raises(ValueError):
            store.my_offers.add(make_my_offer(2, offer_type=5))
        assert not store.my_offers.exists_by_hash(h(1))
        assert store.my_offers.count() == 0

    def test_unknown_status_rejected_on_edit(self, store):
        mine = make_my_offer(3)
        store.my_offers.add(mine)
        with pytest.raises(ValueError):
            store.my_offers.edit(make_my_offer(3, status=42))
        with pytest.raises(ValueError):
            store.my_offers.set_status(mine.id_transaction, 42)
        assert store.my_offers.get_by_hash(h(3)).status == OfferStatus.ACTIVE

    def test_edit_keeps_pub_key(self, store):
        store.my_offers.add(make_my_offer(3))
        changed = make_my_offer(3, status=OfferStatus.SUSPENDED).with_offer(pub_key="other", price=5)
        assert store.my_offers.edit(changed) == 1

        stored = store.my_offers.get_by_hash(h(3))
        assert stored.status == OfferStatus.SUSPENDED
        assert stored.offer.price == 5
        assert stored.offer.pub_key == "pub3"

    def test_set_expired_status_is_strict(self, store):
        store.my_offers.add(make_my_offer(1, expires=990))
        store.my_offers.add(make_my_offer(2, expires=1000))
        store.my_offers.add(make_my_offer(3, expires=1010))

        assert store.my_offers.set_expired_status(now=1000) == 1
        assert store.my_offers.get_by_hash(h(1)).status == OfferStatus.EXPIRED
        assert store.my_offers.get_by_hash(h(2)).status == OfferStatus.ACTIVE
        assert store.my_offers.count() == 3

    def test_set_status(self, store):
        mine = make_my_offer(4)
        store.my_offers.add(mine)
        assert store.my_offers.set_status(mine.id_transaction, OfferStatus.CANCELLED) == 1
        assert store.my_offers.get(mine.id_transaction).status == OfferStatus.CANCELLED

    def test_ownership_filters(self, store):
        store.my_offers.add(make_my_offer(1, offer_type=OfferType.SELL))
        store.my_offers.add(make_my_offer(2, offer_type=OfferType.BUY))
        store.my_offers.add(make_my_offer(3, offer_type=OfferType.BUY, status=OfferStatus.DRAFT))

        assert store.my_offers.count(OfferFilter(offer_type=OfferType.BUY)) == 2
        assert store.my_offers.count(OfferFilter(status=OfferStatus.ACTIVE)) == 2
        drafts = store.my_offers.list(OfferFilter(offer_type=OfferType.BUY, status=OfferStatus.DRAFT))
        assert [m.hash for m in drafts] == [h(3)]


# --- Filter List ---

class TestFilterList:
    def test_add_list_delete(self, store):
        store.filters.add("alpha")
        store.filters.add("beta")
        assert sorted(store.filters.list()) == ["alpha", "beta"]

        store.filters.delete("alpha")
        assert store.filters.list() == ["beta"]

    def test_duplicate_fails(self, store):
        store.filters.add("alpha")
        with pytest.raises(StatementError):
            store.filters.add("alpha")

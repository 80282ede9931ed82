from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from tourcore.errors import ForbiddenError, NotFoundError, TourNotPurchasableError

GUIDE_ID = "guide-1"
TOURIST_ID = "tourist-1"


def test_get_cart_without_items_returns_empty_cart(engine) -> None:
    cart = engine.cart.get_cart("nobody")

    assert cart.tourist_id == "nobody"
    assert cart.items == {}
    assert cart.total_price == 0


def test_unpublished_tour_cannot_be_added(engine, make_tour) -> None:
    draft = make_tour(published=False)

    with pytest.raises(TourNotPurchasableError):
        engine.cart.add_item(TOURIST_ID, draft.id)
    assert engine.cart.get_cart(TOURIST_ID).items == {}


def test_unknown_tour_cannot_be_added(engine) -> None:
    with pytest.raises(NotFoundError):
        engine.cart.add_item(TOURIST_ID, "tour_missing")


def test_re_adding_refreshes_the_price_snapshot(engine, make_tour) -> None:
    tour = make_tour(price=10.0)
    engine.cart.add_item(TOURIST_ID, tour.id)

    engine.catalog.publish_tour(tour.id, guide_id=GUIDE_ID, price=12.5)
    cart = engine.cart.add_item(TOURIST_ID, tour.id)

    assert list(cart.items) == [tour.id]
    assert cart.items[tour.id].price == 12.5
    assert cart.total_price == 12.5


def test_cart_keeps_the_price_seen_at_add_time(engine, make_tour) -> None:
    tour = make_tour(price=10.0)
    engine.cart.add_item(TOURIST_ID, tour.id)

    engine.catalog.publish_tour(tour.id, guide_id=GUIDE_ID, price=99.0)

    assert engine.cart.get_cart(TOURIST_ID).items[tour.id].price == 10.0


def test_remove_item(engine, make_tour) -> None:
    first = make_tour("Historic Belgrade", 10.0)
    second = make_tour("River Walk", 15.0)
    engine.cart.add_item(TOURIST_ID, first.id)
    engine.cart.add_item(TOURIST_ID, second.id)

    cart = engine.cart.remove_item(TOURIST_ID, first.id)
    assert list(cart.items) == [second.id]
    assert cart.total_price == 15.0

    unchanged = engine.cart.remove_item(TOURIST_ID, "tour_missing")
    assert list(unchanged.items) == [second.id]


def test_returned_cart_is_a_snapshot(engine, make_tour) -> None:
    tour = make_tour()
    cart = engine.cart.add_item(TOURIST_ID, tour.id)
    cart.items.clear()

    assert tour.id in engine.cart.get_cart(TOURIST_ID).items


def test_checkout_grants_every_item_and_empties_the_cart(engine, make_tour) -> None:
    belgrade = make_tour("Historic Belgrade", 10.0)
    river = make_tour("River Walk", 15.0)
    engine.cart.add_item(TOURIST_ID, belgrade.id)
    engine.cart.add_item(TOURIST_ID, river.id)
    assert engine.cart.get_cart(TOURIST_ID).total_price == 25.0

    result = engine.cart.checkout(TOURIST_ID)

    assert result.complete
    assert {token.tour_id for token in result.tokens} == {belgrade.id, river.id}
    assert engine.cart.get_cart(TOURIST_ID).total_price == 0
    assert engine.entitlements.list_owned(TOURIST_ID) == {belgrade.id, river.id}


def test_checkout_of_empty_cart_is_a_no_op(engine) -> None:
    result = engine.cart.checkout(TOURIST_ID)

    assert result.complete
    assert result.tokens == []
    assert engine.entitlements.list_owned(TOURIST_ID) == set()


def test_buying_an_owned_tour_again_returns_the_same_token(engine, make_tour) -> None:
    tour = make_tour()
    engine.cart.add_item(TOURIST_ID, tour.id)
    first = engine.cart.checkout(TOURIST_ID).tokens[0]

    engine.cart.add_item(TOURIST_ID, tour.id)
    second = engine.cart.checkout(TOURIST_ID).tokens[0]

    assert second.token == first.token
    assert len(engine.storage.list_tokens(TOURIST_ID)) == 1


def test_checkout_keeps_items_that_became_unpublished(engine, make_tour) -> None:
    kept = make_tour("Historic Belgrade", 10.0)
    withdrawn = make_tour("River Walk", 15.0)
    engine.cart.add_item(TOURIST_ID, kept.id)
    engine.cart.add_item(TOURIST_ID, withdrawn.id)
    engine.catalog.unpublish_tour(withdrawn.id, guide_id=GUIDE_ID)

    result = engine.cart.checkout(TOURIST_ID)

    assert not result.complete
    assert [token.tour_id for token in result.tokens] == [kept.id]
    assert [item.tour_id for item in result.failed_items] == [withdrawn.id]
    assert list(engine.cart.get_cart(TOURIST_ID).items) == [withdrawn.id]
    assert engine.entitlements.list_owned(TOURIST_ID) == {kept.id}


def test_entitlement_survives_repricing(engine, make_tour) -> None:
    tour = make_tour(price=10.0)
    engine.cart.add_item(TOURIST_ID, tour.id)
    token = engine.cart.checkout(TOURIST_ID).tokens[0]

    engine.catalog.publish_tour(tour.id, guide_id=GUIDE_ID, price=40.0)

    assert engine.entitlements.get_token(TOURIST_ID, tour.id) == token


def test_unpublished_tour_leaves_the_catalog_but_not_the_owners(engine, make_tour) -> None:
    tour = make_tour(price=10.0)
    engine.cart.add_item(TOURIST_ID, tour.id)
    engine.cart.checkout(TOURIST_ID)

    withdrawn = engine.catalog.unpublish_tour(tour.id, guide_id=GUIDE_ID)

    assert withdrawn.is_published is False
    assert withdrawn.status.value == "draft"
    assert engine.catalog.list_tours() == []
    with pytest.raises(TourNotPurchasableError):
        engine.cart.add_item("tourist-2", tour.id)
    assert engine.entitlements.is_entitled(TOURIST_ID, tour.id)


def test_only_the_guide_can_unpublish(engine, make_tour) -> None:
    tour = make_tour()

    with pytest.raises(ForbiddenError):
        engine.catalog.unpublish_tour(tour.id, guide_id="someone-else")

    assert engine.catalog.require_tour(tour.id).is_published is True


def test_concurrent_checkouts_do_not_double_grant(engine, make_tour) -> None:
    tours = [make_tour(f"Tour {i}", 5.0 + i) for i in range(3)]
    for tour in tours:
        engine.cart.add_item(TOURIST_ID, tour.id)

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: engine.cart.checkout(TOURIST_ID), range(8)))

    issued = [token for result in results for token in result.tokens]
    assert len(issued) == 3
    assert {token.tour_id for token in issued} == {tour.id for tour in tours}
    assert len(engine.storage.list_tokens(TOURIST_ID)) == 3
    assert engine.cart.get_cart(TOURIST_ID).items == {}


def test_carts_of_different_tourists_are_independent(engine, make_tour) -> None:
    tour = make_tour()
    engine.cart.add_item("tourist-a", tour.id)

    engine.cart.checkout("tourist-b")

    assert tour.id in engine.cart.get_cart("tourist-a").items
    assert engine.entitlements.list_owned("tourist-b") == set()

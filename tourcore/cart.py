from __future__ import annotations

import logging
from typing import List

from .catalog import TourCatalog
from .entitlements import EntitlementStore
from .errors import TourNotPurchasableError
from .models import CartItem, CheckoutResult, PurchaseToken, ShoppingCart
from .storage import InMemoryStorage

logger = logging.getLogger(__name__)


class CartManager:
    def __init__(self, storage: InMemoryStorage, catalog: TourCatalog, entitlements: EntitlementStore) -> None:
        self._storage = storage
        self._catalog = catalog
        self._entitlements = entitlements

    def get_cart(self, tourist_id: str) -> ShoppingCart:
        with self._cart_lock(tourist_id):
            cart = self._storage.get_cart(tourist_id)
            if not cart:
                return ShoppingCart(tourist_id=tourist_id)
            return cart.snapshot()

    def add_item(self, tourist_id: str, tour_id: str) -> ShoppingCart:
        tour = self._catalog.require_tour(tour_id)
        if not tour.is_published:
            raise TourNotPurchasableError("cannot add an unpublished tour to the cart")
        with self._cart_lock(tourist_id):
            cart = self._get_or_create(tourist_id)
            # Re-adding refreshes the snapshot to the current name and price.
            cart.put(CartItem(tour_id=tour.id, tour_name=tour.name, price=tour.price))
            self._storage.save_cart(cart)
            logger.info(
                "Tour added to cart",
                extra={"tourist_id": tourist_id, "tour_id": tour_id, "price": tour.price},
            )
            return cart.snapshot()

    def remove_item(self, tourist_id: str, tour_id: str) -> ShoppingCart:
        with self._cart_lock(tourist_id):
            cart = self._storage.get_cart(tourist_id)
            if not cart:
                return ShoppingCart(tourist_id=tourist_id)
            if cart.discard(tour_id):
                self._storage.save_cart(cart)
                logger.info("Tour removed from cart", extra={"tourist_id": tourist_id, "tour_id": tour_id})
            return cart.snapshot()

    def checkout(self, tourist_id: str) -> CheckoutResult:
        """Convert every purchasable cart item into an entitlement.

        Items whose tour is no longer published stay in the cart and are
        reported back; granted items leave the cart together with their tokens.
        """
        with self._cart_lock(tourist_id):
            cart = self._storage.get_cart(tourist_id)
            if not cart or not cart.items:
                return CheckoutResult(tokens=[], failed_items=[], cart=ShoppingCart(tourist_id=tourist_id))

            tokens: List[PurchaseToken] = []
            failed: List[CartItem] = []
            for item in list(cart.items.values()):
                tour = self._catalog.get_tour(item.tour_id)
                if not tour or not tour.is_published:
                    failed.append(item)
                    continue
                token, _ = self._entitlements.grant(tourist_id, item.tour_id)
                tokens.append(token)
                cart.discard(item.tour_id)

            self._storage.save_cart(cart)
            logger.info(
                "Checkout processed",
                extra={"tourist_id": tourist_id, "purchased": len(tokens), "failed": len(failed)},
            )
            return CheckoutResult(tokens=tokens, failed_items=failed, cart=cart.snapshot())

    def _get_or_create(self, tourist_id: str) -> ShoppingCart:
        cart = self._storage.get_cart(tourist_id)
        if cart:
            return cart
        return ShoppingCart(tourist_id=tourist_id)

    def _cart_lock(self, tourist_id: str):
        return self._storage.locks.hold(("cart", tourist_id))

from __future__ import annotations

import asyncio
import uuid
import weakref
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator

from app.core.logging import domain_event, get_logger
from app.core.metrics import record_cart_operation, record_coupon_dropped
from app.domain.cart import (
    CartNotice,
    CartOwner,
    CartResult,
    CartStore,
    CatalogLookup,
    CouponLookup,
    CouponRule,
)
from app.domain.enums import CouponStatus
from app.models.cart import Cart
from app.services import cart_pricing
from app.services.exceptions import (
    BusinessRuleError,
    ConflictError,
    DomainValidationError,
    ResourceNotFoundError,
    ServiceError,
)

logger = get_logger("app.cart")

COUPON_REMOVED_REASON = "The coupon was removed because the purchase requirements are no longer met."


class CartLockRegistry:
    """One asyncio.Lock per cart owner, dropped once nobody holds a reference."""

    def __init__(self) -> None:
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def lock_for(self, owner: CartOwner) -> asyncio.Lock:
        if owner.is_anonymous:
            # cada request anónimo termina en un carrito nuevo
            return asyncio.Lock()
        lock = self._locks.get(owner.key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[owner.key] = lock
        return lock


cart_locks = CartLockRegistry()


def _check_quantity(quantity: int) -> None:
    if quantity < 1:
        raise DomainValidationError("Quantity must be at least 1")


class CartService:
    """Cart mutations with derived totals and coupon eligibility kept consistent.

    Every mutation follows the same sequence: lookup, mutate, revalidate the
    active coupon, recompute totals, persist. Mutations on the same owner are
    serialised by ``CartLockRegistry``.
    """

    def __init__(
        self,
        catalog: CatalogLookup,
        coupons: CouponLookup,
        store: CartStore,
        *,
        locks: CartLockRegistry | None = None,
    ) -> None:
        self._catalog = catalog
        self._coupons = coupons
        self._store = store
        self._locks = locks or cart_locks

    @asynccontextmanager
    async def _mutation(self, operation: str, *owners: CartOwner) -> AsyncIterator[None]:
        async with AsyncExitStack() as stack:
            for owner in owners:
                await stack.enter_async_context(self._locks.lock_for(owner))
            try:
                yield
                # Se confirma con el lock tomado: el siguiente request ya lee el estado nuevo.
                await self._store.commit()
            except ServiceError:
                record_cart_operation(operation, "error")
                raise
        record_cart_operation(operation, "success")

    async def get_or_create_cart(self, owner: CartOwner) -> tuple[Cart, str | None]:
        """Return the owner's cart, creating an empty one when missing.

        Anonymous owners and unknown guest ids get a fresh guest cart; its id is
        returned as the second element so the client can remember it.
        """
        if not owner.is_anonymous:
            cart = await self._store.find_cart(owner)
            if cart is not None:
                return cart, None

        if owner.user_id is not None:
            return await self._store.create_cart(owner), None

        guest_cart_id = str(uuid.uuid4())
        cart = await self._store.create_cart(CartOwner(guest_cart_id=guest_cart_id))
        return cart, guest_cart_id

    async def _existing_cart(self, owner: CartOwner) -> Cart | None:
        if owner.is_anonymous:
            return None
        return await self._store.find_cart(owner)

    async def _revalidate_coupon(self, cart: Cart) -> CartNotice | None:
        code = cart.active_coupon_code
        if not code:
            return None

        coupon = await self._coupons.get_coupon_by_code(code)
        subtotal = cart_pricing.eligible_subtotal(cart)
        if coupon is None or not cart_pricing.meets_minimum(coupon, subtotal):
            cart_pricing.clear_coupon(cart)
            record_coupon_dropped()
            domain_event(
                logger,
                "cart.coupon_removed",
                cart_id=str(cart.id) if cart.id else None,
                coupon_code=code,
                eligible_subtotal=subtotal,
            )
            return CartNotice(coupon_status=CouponStatus.removed, reason=COUPON_REMOVED_REASON, coupon_code=code)

        cart.coupon_discount = cart_pricing.coupon_discount(coupon, subtotal)
        return None

    async def _commit(self, cart: Cart, *, new_guest_cart_id: str | None = None) -> CartResult:
        notice = await self._revalidate_coupon(cart)
        cart_pricing.recompute_totals(cart)
        saved = await self._store.save(cart)
        return CartResult(cart=saved, new_guest_cart_id=new_guest_cart_id, notice=notice)

    async def get_cart(self, owner: CartOwner) -> CartResult:
        async with self._mutation("get", owner):
            cart, new_guest_cart_id = await self.get_or_create_cart(owner)
            return CartResult(cart=cart, new_guest_cart_id=new_guest_cart_id)

    async def add_item(self, owner: CartOwner, product_id: uuid.UUID, quantity: int) -> CartResult:
        _check_quantity(quantity)
        async with self._mutation("add_item", owner):
            product = await self._catalog.get_product(product_id)
            if product is None:
                raise ResourceNotFoundError("Product not found")

            cart, new_guest_cart_id = await self.get_or_create_cart(owner)
            existing = cart_pricing.find_line(cart, product.id)
            new_quantity = quantity + (existing.quantity if existing else 0)
            if new_quantity > product.stock_quantity:
                raise ConflictError("Insufficient stock for the requested quantity")

            if existing is not None:
                cart_pricing.set_quantity(existing, new_quantity)
            else:
                cart.items.append(cart_pricing.build_line(product, quantity))

            return await self._commit(cart, new_guest_cart_id=new_guest_cart_id)

    async def update_item_quantity(self, owner: CartOwner, product_id: uuid.UUID, quantity: int) -> CartResult:
        _check_quantity(quantity)
        async with self._mutation("update_item", owner):
            cart = await self._existing_cart(owner)
            line = cart_pricing.find_line(cart, product_id) if cart is not None else None
            if line is None:
                raise ResourceNotFoundError("Product not found in cart")

            product = await self._catalog.get_product(product_id)
            if product is None:
                raise ResourceNotFoundError("Product no longer exists in the catalog")
            if quantity > product.stock_quantity:
                raise ConflictError("The new quantity exceeds the available stock")

            cart_pricing.set_quantity(line, quantity)
            return await self._commit(cart)

    async def remove_item(self, owner: CartOwner, product_id: uuid.UUID) -> CartResult:
        async with self._mutation("remove_item", owner):
            cart = await self._existing_cart(owner)
            line = cart_pricing.find_line(cart, product_id) if cart is not None else None
            if line is None:
                raise ResourceNotFoundError("Product not found in cart")

            cart.items.remove(line)
            return await self._commit(cart)

    async def check_coupon(self, cart: Cart, code: str) -> tuple[CouponRule, float]:
        """Look up ``code`` and check it against the cart's eligible subtotal.

        Returns the coupon and the subtotal it was checked against; nothing is
        written to the cart.
        """
        coupon = await self._coupons.get_coupon_by_code(cart_pricing.normalize_coupon_code(code))
        if coupon is None:
            raise ResourceNotFoundError("Invalid or expired coupon")

        subtotal = cart_pricing.eligible_subtotal(cart)
        if not cart_pricing.meets_minimum(coupon, subtotal):
            raise BusinessRuleError(
                f"The minimum purchase value for this coupon is R$ {float(coupon.min_purchase_value):.2f}"
            )
        return coupon, subtotal

    async def apply_coupon(self, owner: CartOwner, code: str) -> CartResult:
        async with self._mutation("apply_coupon", owner):
            cart, new_guest_cart_id = await self.get_or_create_cart(owner)
            coupon, subtotal = await self.check_coupon(cart, code)
            cart_pricing.attach_coupon(cart, coupon, subtotal)
            cart_pricing.recompute_totals(cart)
            saved = await self._store.save(cart)
            return CartResult(cart=saved, new_guest_cart_id=new_guest_cart_id)

    async def remove_coupon(self, owner: CartOwner) -> CartResult:
        async with self._mutation("remove_coupon", owner):
            cart, new_guest_cart_id = await self.get_or_create_cart(owner)
            cart_pricing.clear_coupon(cart)
            cart_pricing.recompute_totals(cart)
            saved = await self._store.save(cart)
            return CartResult(cart=saved, new_guest_cart_id=new_guest_cart_id)

    async def merge_guest_cart(self, user_id: uuid.UUID, guest_cart_id: str) -> CartResult:
        """Move a guest cart's lines into the user's cart and delete the guest cart.

        Conflicting lines keep the user's frozen unit price. Stock is not checked
        here; checkout re-validates stock for every line.
        """
        user_owner = CartOwner(user_id=user_id)
        guest_owner = CartOwner(guest_cart_id=guest_cart_id)
        async with self._mutation("merge", user_owner, guest_owner):
            guest_cart = await self._store.find_cart(guest_owner)
            if guest_cart is None or not guest_cart.items:
                cart, _ = await self.get_or_create_cart(user_owner)
                return CartResult(cart=cart)

            user_cart, _ = await self.get_or_create_cart(user_owner)
            for guest_line in guest_cart.items:
                existing = cart_pricing.find_line(user_cart, guest_line.product_id)
                if existing is not None:
                    cart_pricing.set_quantity(existing, existing.quantity + guest_line.quantity)
                else:
                    user_cart.items.append(cart_pricing.copy_line(guest_line))

            merged_lines = len(guest_cart.items)
            result = await self._commit(user_cart)
            await self._store.delete_guest_cart(guest_cart_id)
            domain_event(
                logger,
                "cart.guest_merged",
                user_id=str(user_id),
                guest_cart_id=guest_cart_id,
                merged_lines=merged_lines,
            )
            return result

    @asynccontextmanager
    async def checkout_session(self, owner: CartOwner, coupon_code: str | None = None) -> AsyncIterator[CartResult]:
        """Hold the owner's lock and yield the priced cart for checkout.

        ``coupon_code`` is applied with the same rules as ``apply_coupon``;
        without it the active coupon is revalidated. The cart is not persisted
        here: the caller empties it with ``empty_cart`` inside the block.
        """
        async with self._mutation("checkout", owner):
            cart = await self._existing_cart(owner)
            if cart is None or not cart.items:
                raise BusinessRuleError("Your cart is empty")

            notice = None
            if coupon_code:
                coupon, subtotal = await self.check_coupon(cart, coupon_code)
                cart_pricing.attach_coupon(cart, coupon, subtotal)
            else:
                notice = await self._revalidate_coupon(cart)
            cart_pricing.recompute_totals(cart)
            yield CartResult(cart=cart, notice=notice)

    async def empty_cart(self, cart: Cart) -> Cart:
        """Drop every line and the coupon. Only call it inside ``checkout_session``."""
        cart.items.clear()
        cart_pricing.clear_coupon(cart)
        cart_pricing.recompute_totals(cart)
        return await self._store.save(cart)

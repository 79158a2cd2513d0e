# held.py
import copy
from datetime import datetime

from logger import get_logger
from models import Cart, CheckoutMetadata, EmptyCartError
from utils import generate_id

logger = get_logger("held")


class HeldTransaction:
    """A suspended sale: cart lines plus the checkout inputs at hold time."""
    def __init__(self, held_id, lines, checkout: dict, created_at=None):
        self.id = held_id
        self.lines = lines
        self.checkout = checkout
        self.created_at = created_at or datetime.now()

    @property
    def subtotal(self):
        return round(sum(line.unit_price * line.quantity for line in self.lines), 2)

    @property
    def item_count(self):
        return sum(line.quantity for line in self.lines)

    @property
    def customer_name(self):
        return self.checkout.get('customer_name', "")

    def __repr__(self):
        return f"HeldTransaction({self.id!r}, items={self.item_count})"


class HeldTransactionStore:
    """Held sales in hold order. Retrieving one moves it back into the cart."""
    def __init__(self):
        self._held = []

    def __len__(self):
        return len(self._held)

    def __contains__(self, held_id):
        return self.get(held_id) is not None

    def list(self):
        return list(self._held)

    def get(self, held_id):
        for held in self._held:
            if held.id == held_id:
                return held
        return None

    def hold(self, cart: Cart, metadata: CheckoutMetadata) -> str:
        """
        Snapshot the cart and checkout inputs, then clear both.
        Raises EmptyCartError when there is nothing to hold.
        """
        if cart.is_empty:
            raise EmptyCartError("Cannot hold an empty cart")

        held = HeldTransaction(
            generate_id("HOLD-"),
            cart.snapshot(),
            copy.deepcopy(metadata.held_snapshot()),
        )
        self._held.append(held)
        cart.clear()
        metadata.reset()
        logger.info(f"Held transaction {held.id} with {held.item_count} items")
        return held.id

    def retrieve(self, held_id, cart: Cart, metadata: CheckoutMetadata):
        """Restore a held sale into the cart; None when the id is unknown."""
        held = self.get(held_id)
        if held is None:
            logger.warning(f"Held transaction {held_id} not found")
            return None

        if not cart.is_empty:
            logger.info(f"Replacing {len(cart)} active cart lines with held transaction {held_id}")
        cart.restore(held.lines)
        metadata.apply(copy.deepcopy(held.checkout))
        self._held.remove(held)
        logger.info(f"Retrieved held transaction {held_id}")
        return held

    def discard(self, held_id) -> bool:
        held = self.get(held_id)
        if held is None:
            return False
        self._held.remove(held)
        logger.info(f"Discarded held transaction {held_id}")
        return True

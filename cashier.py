# cashier.py
import checkout
from branches import BranchSelector
from catalog import Catalog
from events import EventHub
from held import HeldTransactionStore
from logger import get_logger
from models import (
    Cart, CheckoutError, CheckoutMetadata, EmptyCartError,
    InsufficientStockError, NetworkError,
)
from reconciler import StockReconciler

logger = get_logger("cashier")


class CashierSystem:
    """
    Coordinates the catalog, cart, held sales and checkout of one terminal.

    All state is owned here and handed to the UI by reference. Handlers run
    on one thread; off-thread work (fetches, push transports) re-enters via
    complete_fetch() and EventHub.pump().
    """
    def __init__(self, api, db, hub: EventHub = None, role=None, branch_id=None,
                 catalog: Catalog = None, notify=None):
        self.api = api
        self.db = db
        self.hub = hub or EventHub()
        self.catalog = catalog if catalog is not None else Catalog()
        self.cart = Cart(self.catalog)
        self.metadata = CheckoutMetadata()
        self.held = HeldTransactionStore()
        self.categories = []
        self.branches = BranchSelector(db, role=role, assigned_branch_id=branch_id)
        self.reconciler = StockReconciler(self.catalog, self.cart, self.hub, self.request_refresh)
        self.notify = notify or (lambda level, message: None)
        # Set by a UI that runs fetches off-thread
        self.refresh_hook = None
        self._inflight = 0
        # branch whose catalog is currently loaded
        self._loaded_branch = None
        self.branches.on_change(self._branch_changed)

    @property
    def branch_id(self):
        return self.branches.branch_id

    @property
    def loading(self):
        return self._inflight > 0

    def start(self):
        """Pick the starting branch; the change listener loads its catalog."""
        try:
            branch_id = self.branches.initialize(self.api.fetch_branches)
        except NetworkError as e:
            logger.error(f"Could not load branches: {e}")
            raise
        self.load_categories()
        return branch_id

    def load_categories(self) -> bool:
        """Fetch the category list; on failure the previous list is kept."""
        try:
            self.categories = list(self.api.fetch_categories())
        except NetworkError as e:
            logger.warning(f"Could not load categories: {e}")
            return False
        logger.info(f"Loaded {len(self.categories)} categories")
        return True

    def search(self, term: str = "", category_id=None):
        return self.catalog.search(term, category_id)

    def select_branch(self, branch_id) -> bool:
        return self.branches.select(branch_id)

    def _branch_changed(self, branch_id):
        if not self.cart.is_empty:
            logger.warning(
                f"Branch changed to {branch_id} with {len(self.cart)} cart lines "
                f"validated against the previous branch"
            )
        self.reconciler.subscribe(branch_id)
        self.request_refresh()

    # --- catalog loading ---

    def begin_fetch(self):
        """Start a catalog fetch; returns the branch id it is for."""
        self._inflight += 1
        self.reconciler.enabled = False
        return self.branch_id

    def _end_fetch(self):
        self._inflight = max(self._inflight - 1, 0)
        if not self._inflight:
            self.reconciler.enabled = True

    def complete_fetch(self, ticket, products) -> bool:
        """Apply a fetch result unless the branch changed meanwhile."""
        self._end_fetch()
        if ticket != self.branch_id:
            logger.info(f"Discarding catalog for branch {ticket}, active branch is {self.branch_id}")
            return False
        self.catalog.replace_all(products)
        if ticket == self._loaded_branch:
            self._sync_cart(ticket)
        self._loaded_branch = ticket
        logger.info(f"Loaded {len(products)} products for branch {ticket}")
        return True

    def _sync_cart(self, branch_id):
        """Refresh cart lines from a reloaded catalog of the same branch."""
        for line in list(self.cart):
            stock = self.catalog.stock_for(line.variant_id, branch_id)
            if stock is not None:
                self.cart.sync_stock(line.variant_id, stock.quantity, stock.price)

    def fail_fetch(self, ticket, error):
        self._end_fetch()
        logger.error(f"Catalog fetch for branch {ticket} failed: {error}")

    def refresh_catalog(self):
        """Fetch the catalog for the active branch. Prior data is kept on failure."""
        if not self.branch_id:
            logger.debug("No branch selected, catalog fetch skipped")
            return False
        ticket = self.begin_fetch()
        try:
            products = self.api.fetch_products(ticket)
        except NetworkError as e:
            self.fail_fetch(ticket, e)
            raise
        return self.complete_fetch(ticket, products)

    def request_refresh(self):
        if self.refresh_hook is not None:
            self.refresh_hook()
            return
        try:
            self.refresh_catalog()
        except NetworkError:
            self.notify("error", "Could not refresh products")

    # --- cart ---

    def add_to_cart(self, variant_id) -> bool:
        variant = self.catalog.variant(variant_id)
        if variant is None:
            self.notify("warning", "Product not found")
            return False
        try:
            self.cart.add_line(variant, self.branch_id)
        except InsufficientStockError as e:
            logger.warning(str(e))
            self.notify("warning", "Not enough stock")
            return False
        return True

    def update_quantity(self, variant_id, quantity: int) -> bool:
        try:
            return self.cart.update_quantity(variant_id, quantity)
        except InsufficientStockError as e:
            logger.warning(str(e))
            self.notify("warning", "Not enough stock")
            return False

    def remove_from_cart(self, variant_id):
        self.cart.remove_line(variant_id)

    def clear_cart(self):
        self.cart.clear()

    def reset_transaction(self):
        self.cart.clear()
        self.metadata.reset()

    # --- held sales ---

    def hold(self):
        """Park the current sale; returns its id, or None for an empty cart."""
        try:
            held_id = self.held.hold(self.cart, self.metadata)
        except EmptyCartError:
            self.notify("warning", "Cart is empty")
            return None
        self.notify("success", "Transaction held")
        return held_id

    def retrieve_held(self, held_id):
        return self.held.retrieve(held_id, self.cart, self.metadata)

    def discard_held(self, held_id) -> bool:
        return self.held.discard(held_id)

    # --- totals ---

    @property
    def subtotal(self):
        return self.cart.subtotal

    @property
    def item_count(self):
        return self.cart.item_count

    @property
    def discount_amount(self):
        return checkout.discount_amount(
            self.cart.subtotal, self.metadata.discount, self.metadata.discount_type
        )

    @property
    def total(self):
        return checkout.total(self.cart.subtotal, self.metadata.discount, self.metadata.discount_type)

    @property
    def change_due(self):
        return checkout.change_due(self.total, self.metadata.cash_received)

    def checkout(self):
        """
        Submit the sale. On success the cart and inputs are reset and the
        transaction record is returned; otherwise CheckoutError (or
        NetworkError) is raised and nothing is cleared.
        """
        total = self.total
        errors = checkout.validate_checkout(self.cart.lines, self.metadata, total)
        if errors:
            raise CheckoutError("; ".join(errors))

        self.metadata.processing = True
        try:
            record = self.api.submit_checkout(self.branch_id, self.cart.lines, self.metadata)
        except (CheckoutError, NetworkError) as e:
            logger.error(f"Checkout failed: {e}")
            self.metadata.processing = False
            raise

        cash = self.metadata.cash_received
        self.cart.clear()
        self.metadata.reset()
        self.metadata.last_transaction = record
        self.metadata.last_cash_received = cash
        logger.info(f"Checkout complete, total {total}")
        return record

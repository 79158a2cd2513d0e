# reconciler.py
from catalog import Catalog
from events import (
    EventHub, MalformedEventError, ProductCreated, ProductDeleted,
    ProductUpdated, RefreshNeeded, StockUpdated, parse_event,
)
from logger import get_logger
from models import Cart, NetworkError

logger = get_logger("reconciler")


class StockReconciler:
    """
    Applies inventory push events for the active branch to the catalog
    cache and to matching cart lines.

    refresh is called for events that need a full catalog re-fetch.
    """
    def __init__(self, catalog: Catalog, cart: Cart, hub: EventHub, refresh):
        self.catalog = catalog
        self.cart = cart
        self.hub = hub
        self.refresh = refresh
        self.branch_id = None
        self.enabled = True
        self._unsubscribe = None
        # last applied version per (variant_id, branch_id)
        self._versions = {}

    @property
    def subscribed(self):
        return self._unsubscribe is not None

    def subscribe(self, branch_id):
        """(Re)subscribe for branch_id, dropping any previous subscription."""
        self.unsubscribe()
        self.branch_id = branch_id
        self._unsubscribe = self.hub.subscribe(self.handle)
        logger.info(f"Listening for inventory events on branch {branch_id}")

    def unsubscribe(self):
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def handle(self, name: str, payload):
        """Hub callback: parse a raw message and apply it."""
        if not self.enabled:
            logger.debug(f"Event {name} dropped while a catalog fetch is in flight")
            return
        if self.branch_id is None:
            logger.debug(f"Event {name} dropped, no branch selected")
            return
        try:
            event = parse_event(name, payload)
        except MalformedEventError as e:
            logger.warning(f"Rejected inventory event: {e}")
            return
        self.apply(event)

    def apply(self, event):
        if isinstance(event, StockUpdated):
            self._stock_updated(event)
        elif isinstance(event, ProductUpdated):
            self._product_updated(event)
        elif isinstance(event, ProductDeleted):
            self._product_deleted(event)
        elif isinstance(event, (ProductCreated, RefreshNeeded)):
            self._refetch(event)
        else:
            logger.warning(f"Unhandled inventory event {type(event).__name__}")

    def _stock_updated(self, event: StockUpdated):
        if event.branch_id != self.branch_id:
            logger.debug(f"Stock event for branch {event.branch_id} ignored")
            return

        if event.version is not None:
            key = (event.variant_id, event.branch_id)
            last = self._versions.get(key)
            if last is not None and event.version <= last:
                logger.debug(f"Stale stock event v{event.version} for {event.variant_id} ignored")
                return
            self._versions[key] = event.version

        self.catalog.upsert_variant_stock(
            event.branch_id, event.variant_id, event.quantity, event.price
        )
        self.cart.sync_stock(event.variant_id, event.quantity, event.price)

    def _product_updated(self, event: ProductUpdated):
        product = event.product
        self.catalog.upsert_product(product)
        for variant in product.variants:
            stock = variant.stock_for(self.branch_id)
            if stock:
                self.cart.sync_stock(variant.id, stock.quantity, stock.price)

    def _product_deleted(self, event: ProductDeleted):
        if not self.catalog.remove_product(event.product_id):
            logger.debug(f"Delete for unknown product {event.product_id} ignored")

    def _refetch(self, event):
        logger.info(f"{event.name} received, re-fetching catalog for branch {self.branch_id}")
        try:
            self.refresh()
        except NetworkError as e:
            # prior catalog stays in place
            logger.error(f"Catalog re-fetch failed: {e}")

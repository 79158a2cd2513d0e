# events.py
"""
Inventory push events and the in-process hub that delivers them.

Transports (socket clients, pollers) hand raw (name, payload) pairs to
EventHub.post() from whatever thread they run on; the owning loop calls
pump() so handlers always run on a single thread.
"""
import queue

from logger import get_logger
from models import ErrorCode, PosError, Product

logger = get_logger("events")

PRODUCT_CREATED = "product:created"
PRODUCT_UPDATED = "product:updated"
PRODUCT_DELETED = "product:deleted"
STOCK_UPDATED = "stock:updated"
REFRESH_NEEDED = "products:refresh"


class MalformedEventError(PosError, ValueError):
    code = ErrorCode.MALFORMED_EVENT


class ProductCreated:
    name = PRODUCT_CREATED

    def __init__(self, product_id=None):
        self.product_id = product_id


class ProductUpdated:
    name = PRODUCT_UPDATED

    def __init__(self, product: Product):
        self.product = product


class ProductDeleted:
    name = PRODUCT_DELETED

    def __init__(self, product_id):
        self.product_id = product_id


class StockUpdated:
    name = STOCK_UPDATED

    def __init__(self, branch_id, variant_id, quantity: int, price: float, version=None):
        self.branch_id = branch_id
        self.variant_id = variant_id
        self.quantity = quantity
        self.price = price
        self.version = version


class RefreshNeeded:
    name = REFRESH_NEEDED

    def __init__(self, reason=None):
        self.reason = reason


def _parse_product_created(payload):
    if isinstance(payload, dict):
        return ProductCreated(payload.get('id'))
    return ProductCreated()


def _parse_product_updated(payload):
    if not isinstance(payload, dict) or 'id' not in payload:
        raise MalformedEventError("product:updated payload must be a product object")
    return ProductUpdated(Product.from_dict(payload))


def _parse_product_deleted(payload):
    if isinstance(payload, dict):
        payload = payload.get('id', payload.get('productId'))
    if payload is None or isinstance(payload, (dict, list)):
        raise MalformedEventError("product:deleted payload must carry a product id")
    return ProductDeleted(payload)


def _whole_number(value, field):
    """Accept ints and integral floats or numeric strings; bools and fractions are rejected."""
    if isinstance(value, bool):
        raise MalformedEventError(f"stock:updated {field} must be a number, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            raise MalformedEventError(f"stock:updated {field} must be a whole number, got {value!r}")
        return int(value)
    if isinstance(value, str):
        return int(value.strip())
    raise MalformedEventError(f"stock:updated {field} must be a number, got {value!r}")


def _parse_stock_updated(payload):
    if not isinstance(payload, dict):
        raise MalformedEventError("stock:updated payload must be an object")
    branch_id = payload.get('cabangId', payload.get('branchId'))
    variant_id = payload.get('productVariantId', payload.get('variantId'))
    if branch_id is None or variant_id is None or 'quantity' not in payload:
        raise MalformedEventError("stock:updated payload is missing branch, variant or quantity")
    quantity = _whole_number(payload['quantity'], 'quantity')
    if quantity < 0:
        raise MalformedEventError(f"stock:updated quantity cannot be negative: {quantity}")
    version = payload.get('version')
    if version is not None:
        version = _whole_number(version, 'version')
    return StockUpdated(
        branch_id,
        variant_id,
        quantity,
        float(payload.get('price') or 0),
        version,
    )


def _parse_refresh_needed(payload):
    if isinstance(payload, dict):
        return RefreshNeeded(payload.get('reason'))
    return RefreshNeeded()


PARSERS = {
    PRODUCT_CREATED: _parse_product_created,
    PRODUCT_UPDATED: _parse_product_updated,
    PRODUCT_DELETED: _parse_product_deleted,
    STOCK_UPDATED: _parse_stock_updated,
    REFRESH_NEEDED: _parse_refresh_needed,
}


def parse_event(name: str, payload):
    """Turn a raw push message into one of the event types above."""
    parser = PARSERS.get(name)
    if parser is None:
        raise MalformedEventError(f"Unknown event type: {name!r}")
    try:
        return parser(payload)
    except MalformedEventError:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise MalformedEventError(f"Malformed {name} payload: {e}") from e


class EventHub:
    """Fan-out of raw push messages to subscribed handlers."""
    def __init__(self):
        self._handlers = []
        self._inbox = queue.Queue()

    @property
    def subscriber_count(self):
        return len(self._handlers)

    def subscribe(self, handler):
        """Register handler(name, payload); returns a function that unsubscribes it."""
        self._handlers.append(handler)

        def unsubscribe():
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def publish(self, name: str, payload=None):
        """Deliver immediately on the calling thread."""
        for handler in list(self._handlers):
            handler(name, payload)

    def post(self, name: str, payload=None):
        """Queue a message from any thread; delivered by pump()."""
        self._inbox.put((name, payload))

    def pump(self, limit=None) -> int:
        """
        Deliver queued messages in arrival order. A handler that raises is
        logged and the remaining handlers and messages still run.
        Returns how many messages were delivered.
        """
        delivered = 0
        while limit is None or delivered < limit:
            try:
                name, payload = self._inbox.get_nowait()
            except queue.Empty:
                break
            for handler in list(self._handlers):
                try:
                    handler(name, payload)
                except Exception:
                    # one bad message must not stall the rest of the queue
                    logger.exception(f"Handler failed on queued event {name}")
            delivered += 1
        if delivered:
            logger.debug(f"Delivered {delivered} queued events")
        return delivered

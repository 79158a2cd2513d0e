# models.py
import copy
from enum import Enum

from logger import get_logger

logger = get_logger("cart")

# Variant labels that mean "no real variant" and are hidden in the cart
DEFAULT_VARIANT_LABELS = ('default', 'standar', 'standard', 'default:', '-')


class ProductKind(str, Enum):
    SINGLE = "SINGLE"
    VARIANT = "VARIANT"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    DEBIT = "DEBIT"
    TRANSFER = "TRANSFER"
    QRIS = "QRIS"


class DiscountType(str, Enum):
    NOMINAL = "NOMINAL"
    PERCENTAGE = "PERCENTAGE"


class ErrorCode(str, Enum):
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    EMPTY_CART = "EMPTY_CART"
    NOT_FOUND = "NOT_FOUND"
    NETWORK_FAILURE = "NETWORK_FAILURE"
    CHECKOUT_FAILED = "CHECKOUT_FAILED"
    MALFORMED_EVENT = "MALFORMED_EVENT"


class PosError(Exception):
    """Base class for recoverable engine errors."""
    code = None


class InsufficientStockError(PosError, ValueError):
    code = ErrorCode.INSUFFICIENT_STOCK

    def __init__(self, variant_id, requested: int, available: int):
        self.variant_id = variant_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Not enough stock for {variant_id}: requested {requested}, available {available}"
        )


class EmptyCartError(PosError, ValueError):
    code = ErrorCode.EMPTY_CART

    def __init__(self, message="Cart is empty"):
        super().__init__(message)


class NetworkError(PosError):
    code = ErrorCode.NETWORK_FAILURE


class CheckoutError(PosError, ValueError):
    code = ErrorCode.CHECKOUT_FAILED


def _enum_value(enum_cls, value, default):
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        return default


class StockRecord:
    """Quantity and price of one variant at one branch."""
    def __init__(self, branch_id, quantity: int = 0, price: float = 0):
        self.branch_id = branch_id
        self.quantity = max(int(quantity), 0)
        self.price = max(float(price or 0), 0)

    @classmethod
    def from_dict(cls, data):
        branch_id = data.get('cabangId', data.get('branchId'))
        return cls(branch_id, data.get('quantity', 0), data.get('price', 0))

    def __eq__(self, other):
        if not isinstance(other, StockRecord):
            return NotImplemented
        return (self.branch_id, self.quantity, self.price) == \
            (other.branch_id, other.quantity, other.price)

    def __repr__(self):
        return f"StockRecord({self.branch_id!r}, quantity={self.quantity}, price={self.price})"


class ProductVariant:
    """A sellable variant; SINGLE products carry exactly one."""
    def __init__(self, variant_id, sku: str, variant_label: str = "", product_name: str = "",
                 product_kind=ProductKind.SINGLE, variant_name: str = "", stocks=None):
        self.id = variant_id
        self.sku = sku or ""
        self.variant_label = variant_label or ""
        self.variant_name = variant_name or ""
        self.product_name = product_name
        self.product_kind = ProductKind(product_kind)
        self.stocks = {}
        for record in stocks or []:
            self.stocks[record.branch_id] = record

    @classmethod
    def from_dict(cls, data, product_name="", product_kind=ProductKind.SINGLE):
        stocks = [StockRecord.from_dict(s) for s in data.get('stocks') or []]
        return cls(
            data['id'],
            data.get('sku', ''),
            variant_label=data.get('variantValue', ''),
            product_name=product_name,
            product_kind=product_kind,
            variant_name=data.get('variantName', ''),
            stocks=stocks,
        )

    def stock_for(self, branch_id):
        return self.stocks.get(branch_id)

    def set_stock(self, branch_id, quantity, price):
        self.stocks[branch_id] = StockRecord(branch_id, quantity, price)

    @property
    def display_label(self):
        return display_label(self.product_kind, self.variant_label)

    def __repr__(self):
        return f"ProductVariant({self.id!r}, sku={self.sku!r})"


class Product:
    """Represents a product fetched from the catalog endpoint."""
    def __init__(self, product_id, name: str, product_kind=ProductKind.SINGLE,
                 variants=None, category_id=None, is_active=True):
        self.id = product_id
        self.name = name
        self.product_kind = ProductKind(product_kind)
        self.category_id = category_id
        self.is_active = is_active
        self.variants = list(variants or [])

    @classmethod
    def from_dict(cls, data):
        """Build a product from the wire format (productType, variants[].stocks[])."""
        kind = _enum_value(ProductKind, data.get('productType', 'SINGLE'), ProductKind.SINGLE)
        name = data.get('name', '')
        category_id = data.get('categoryId')
        if category_id is None and isinstance(data.get('category'), dict):
            category_id = data['category'].get('id')
        variants = [ProductVariant.from_dict(v, name, kind) for v in data.get('variants') or []]
        return cls(data['id'], name, kind, variants, category_id, data.get('isActive', True))

    def variant(self, variant_id):
        for v in self.variants:
            if v.id == variant_id:
                return v
        return None

    def __repr__(self):
        return f"Product({self.id!r}, {self.name!r})"


class Category:
    """Product grouping used to filter the product list."""
    def __init__(self, category_id, name: str = ""):
        self.id = category_id
        self.name = name

    @classmethod
    def from_dict(cls, data):
        return cls(data['id'], data.get('name', ''))

    def __repr__(self):
        return f"Category({self.id!r}, {self.name!r})"


def display_label(product_kind, label: str) -> str:
    """Blank the label of SINGLE products and of default-looking variants."""
    if ProductKind(product_kind) == ProductKind.SINGLE:
        return ""
    lowered = (label or "").lower()
    if any(sentinel in lowered for sentinel in DEFAULT_VARIANT_LABELS):
        return ""
    return label


class CartLine:
    """One line in the current cart."""
    def __init__(self, variant_id, product_name: str, variant_label: str, sku: str,
                 unit_price: float, quantity: int, available_stock: int):
        self.variant_id = variant_id
        self.product_name = product_name
        self.variant_label = variant_label
        self.sku = sku or ""
        self.unit_price = unit_price
        self.quantity = quantity
        self.available_stock = available_stock

    @property
    def line_total(self):
        return round(self.unit_price * self.quantity, 2)

    @property
    def oversold(self):
        return self.quantity > self.available_stock

    def to_dict(self):
        return {
            'productVariantId': self.variant_id,
            'productName': self.product_name,
            'variantInfo': self.variant_label,
            'sku': self.sku,
            'price': self.unit_price,
            'quantity': self.quantity,
            'availableStock': self.available_stock,
        }

    def __eq__(self, other):
        if not isinstance(other, CartLine):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"CartLine({self.variant_id!r}, qty={self.quantity}, stock={self.available_stock})"


class Cart:
    """
    Lines of the active sale, validated against the catalog.
    Every successful add/update leaves quantity <= available_stock.
    """
    def __init__(self, catalog):
        self.catalog = catalog
        self.lines = []

    def __len__(self):
        return len(self.lines)

    def __iter__(self):
        return iter(self.lines)

    @property
    def is_empty(self):
        return not self.lines

    def line_for(self, variant_id):
        for line in self.lines:
            if line.variant_id == variant_id:
                return line
        return None

    def add_line(self, variant: ProductVariant, branch_id):
        """
        Add one unit of variant, priced and limited by its stock at branch_id.
        Raises InsufficientStockError and leaves the cart untouched when
        the branch has no stock left for it.
        """
        stock = self.catalog.stock_for(variant.id, branch_id)
        available = stock.quantity if stock else 0
        if available <= 0:
            raise InsufficientStockError(variant.id, 1, 0)

        line = self.line_for(variant.id)
        if line:
            if line.quantity + 1 > available:
                raise InsufficientStockError(variant.id, line.quantity + 1, available)
            line.quantity += 1
            line.available_stock = available
            return line

        line = CartLine(
            variant.id,
            variant.product_name,
            display_label(variant.product_kind, variant.variant_label),
            variant.sku,
            stock.price,
            1,
            available,
        )
        self.lines.append(line)
        return line

    def update_quantity(self, variant_id, new_quantity: int) -> bool:
        """Set the quantity of a line; zero or less removes it."""
        if new_quantity <= 0:
            self.remove_line(variant_id)
            return True
        line = self.line_for(variant_id)
        if line is None:
            return False
        if new_quantity > line.available_stock:
            raise InsufficientStockError(variant_id, new_quantity, line.available_stock)
        line.quantity = new_quantity
        return True

    def remove_line(self, variant_id):
        self.lines = [line for line in self.lines if line.variant_id != variant_id]

    def clear(self):
        self.lines = []

    def sync_stock(self, variant_id, quantity: int, price: float) -> bool:
        """
        Refresh cached stock and price of a line from a push event.
        An existing quantity above the new stock is left as it is.
        """
        line = self.line_for(variant_id)
        if line is None:
            return False
        line.available_stock = quantity
        line.unit_price = price
        if line.oversold:
            logger.warning(
                f"Cart line {variant_id} now exceeds stock ({line.quantity} > {quantity})"
            )
        return True

    def violations(self):
        return [line for line in self.lines if line.oversold]

    def snapshot(self):
        return copy.deepcopy(self.lines)

    def restore(self, lines):
        self.lines = copy.deepcopy(list(lines))

    @property
    def subtotal(self):
        return round(sum(line.unit_price * line.quantity for line in self.lines), 2)

    @property
    def item_count(self):
        return sum(line.quantity for line in self.lines)


class CheckoutMetadata:
    """Customer, payment and discount inputs of the sale being built."""

    # Fields carried by a held transaction
    HELD_FIELDS = ('customer_name', 'customer_phone', 'payment_method',
                   'discount', 'discount_type', 'bank_name', 'reference_no')

    def __init__(self):
        self.last_transaction = None
        self.last_cash_received = 0
        self.reset()

    def reset(self):
        """Back to defaults; the last transaction result survives."""
        self.customer_name = ""
        self.customer_phone = ""
        self.payment_method = PaymentMethod.CASH
        self.cash_received = 0
        self.discount = 0
        self.discount_type = DiscountType.NOMINAL
        self.bank_name = ""
        self.reference_no = ""
        self.processing = False

    def held_snapshot(self):
        return {name: getattr(self, name) for name in self.HELD_FIELDS}

    def apply(self, snapshot):
        for name in self.HELD_FIELDS:
            if name in snapshot:
                setattr(self, name, snapshot[name])

    def to_dict(self):
        return {
            'customerName': self.customer_name or None,
            'customerPhone': self.customer_phone or None,
            'paymentMethod': PaymentMethod(self.payment_method).value,
            'cashReceived': self.cash_received,
            'discount': self.discount,
            'discountType': DiscountType(self.discount_type).value,
            'bankName': self.bank_name or None,
            'referenceNo': self.reference_no or None,
        }

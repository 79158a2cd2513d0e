# catalog.py
from logger import get_logger
from models import Product

logger = get_logger("catalog")


class Catalog:
    """
    In-memory cache of products and their per-branch stock.
    Filled by a full fetch, then patched by push events.
    """
    def __init__(self):
        self._products = {}
        self._variant_index = {}

    def __len__(self):
        return len(self._products)

    @property
    def products(self):
        return list(self._products.values())

    def _index(self, product: Product):
        for variant in product.variants:
            self._variant_index[variant.id] = product.id

    def _unindex(self, product: Product):
        for variant in product.variants:
            if self._variant_index.get(variant.id) == product.id:
                del self._variant_index[variant.id]

    def replace_all(self, products):
        """Drop everything and load a fresh fetch result."""
        self._products = {}
        self._variant_index = {}
        for product in products:
            self._products[product.id] = product
            self._index(product)
        logger.debug(f"Catalog replaced with {len(self._products)} products")

    def upsert_product(self, product: Product):
        existing = self._products.get(product.id)
        if existing:
            self._unindex(existing)
        # dict keeps the original position on overwrite
        self._products[product.id] = product
        self._index(product)

    def remove_product(self, product_id) -> bool:
        product = self._products.pop(product_id, None)
        if product is None:
            return False
        self._unindex(product)
        return True

    def upsert_variant_stock(self, branch_id, variant_id, quantity: int, price: float) -> bool:
        """Overwrite one stock record; unknown variants are ignored."""
        variant = self.variant(variant_id)
        if variant is None:
            logger.debug(f"Stock update for unknown variant {variant_id} ignored")
            return False
        variant.set_stock(branch_id, quantity, price)
        return True

    def product(self, product_id):
        return self._products.get(product_id)

    def product_for_variant(self, variant_id):
        product_id = self._variant_index.get(variant_id)
        if product_id is None:
            return None
        return self._products.get(product_id)

    def variant(self, variant_id):
        product = self.product_for_variant(variant_id)
        if product is None:
            return None
        return product.variant(variant_id)

    def stock_for(self, variant_id, branch_id):
        """Stock record of a variant at one branch, or None."""
        variant = self.variant(variant_id)
        if variant is None:
            return None
        return variant.stock_for(branch_id)

    def search(self, term: str = "", category_id=None):
        """Active products whose name or any variant SKU contains term."""
        needle = (term or "").strip().lower()
        results = []
        for product in self._products.values():
            if not product.is_active:
                continue
            if category_id and product.category_id != category_id:
                continue
            if needle and needle not in product.name.lower() and \
                    not any(needle in v.sku.lower() for v in product.variants):
                continue
            results.append(product)
        return results

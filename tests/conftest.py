# Shared fixtures: a two-branch catalog, a fake API client and an
# in-memory settings database. No network or display is needed.

import pytest

from branches import Branch
from catalog import Catalog
from cashier import CashierSystem
from database import Database
from events import EventHub
from models import Cart, Category, CheckoutError, NetworkError, Product

BRANCH_A = "cab-a"
BRANCH_B = "cab-b"


def product_payload(product_id="p-1", name="Kopi Susu", product_type="SINGLE", variants=None):
    return {
        "id": product_id,
        "name": name,
        "productType": product_type,
        "categoryId": "cat-1",
        "variants": variants if variants is not None else [
            variant_payload("v-1", "KOPI-01", "Default", [(BRANCH_A, 3, 15000), (BRANCH_B, 10, 16000)])
        ],
    }


def variant_payload(variant_id, sku, value, stocks, name="Size"):
    return {
        "id": variant_id,
        "sku": sku,
        "variantName": name,
        "variantValue": value,
        "stocks": [{"cabangId": b, "quantity": q, "price": p} for b, q, p in stocks],
    }


def sample_products():
    return [
        Product.from_dict(product_payload()),
        Product.from_dict(product_payload(
            "p-2", "Kaos Polos", "VARIANT", [
                variant_payload("v-2", "KAOS-M", "Size M", [(BRANCH_A, 5, 50000)]),
                variant_payload("v-3", "KAOS-L", "Size L", [(BRANCH_A, 0, 55000), (BRANCH_B, 2, 55000)]),
            ])),
        Product.from_dict(product_payload(
            "p-3", "Teh Botol", "SINGLE", [
                variant_payload("v-4", "TEH-01", "Standar", [(BRANCH_B, 7, 5000)]),
            ])),
    ]


class FakeApi:
    """Stands in for ApiClient; records calls and returns canned data."""
    def __init__(self, products=None, branches=None):
        self.products = {BRANCH_A: sample_products(), BRANCH_B: sample_products()}
        if products is not None:
            self.products = products
        self.branches = branches if branches is not None else [
            Branch(BRANCH_A, "Cabang A"), Branch(BRANCH_B, "Cabang B"),
        ]
        self.categories = [Category("cat-1", "Minuman"), Category("cat-2", "Pakaian")]
        self.fail_categories = False
        self.fetch_calls = []
        self.submitted = []
        self.fail_fetch = False
        self.checkout_error = None

    def fetch_products(self, branch_id):
        self.fetch_calls.append(branch_id)
        if self.fail_fetch:
            raise NetworkError("connection refused")
        return self.products.get(branch_id, [])

    def fetch_branches(self):
        if self.fail_fetch:
            raise NetworkError("connection refused")
        return list(self.branches)

    def fetch_categories(self):
        if self.fail_fetch or self.fail_categories:
            raise NetworkError("connection refused")
        return list(self.categories)

    def submit_checkout(self, branch_id, lines, metadata):
        if self.checkout_error:
            raise CheckoutError(self.checkout_error)
        self.submitted.append((branch_id, [line.to_dict() for line in lines], metadata.to_dict()))
        return {"id": "trx-1", "transactionNo": "TRX-0001"}


@pytest.fixture
def catalog():
    cat = Catalog()
    cat.replace_all(sample_products())
    return cat


@pytest.fixture
def cart(catalog):
    return Cart(catalog)


@pytest.fixture
def db():
    database = Database(":memory:")
    yield database
    database.close()


@pytest.fixture
def hub():
    return EventHub()


@pytest.fixture
def api():
    return FakeApi()


@pytest.fixture
def system(api, db, hub):
    """Manager-role system started on branch A."""
    notices = []
    sys = CashierSystem(api, db, hub=hub, role="MANAGER", branch_id=BRANCH_A,
                        notify=lambda level, message: notices.append((level, message)))
    sys.notices = notices
    sys.start()
    return sys

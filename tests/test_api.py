import pytest
import requests

from api import ApiClient
from conftest import BRANCH_A, product_payload
from models import CartLine, CheckoutError, CheckoutMetadata, NetworkError, PaymentMethod


class FakeResponse:
    def __init__(self, data=None, status_code=200, invalid_json=False):
        self._data = data
        self.status_code = status_code
        self.invalid_json = invalid_json

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self.invalid_json:
            raise ValueError("No JSON object could be decoded")
        return self._data

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeSession:
    def __init__(self, response=None, error=None):
        self.headers = {}
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append(("GET", url, params, timeout))
        if self.error:
            raise self.error
        return self.response

    def post(self, url, json=None, timeout=None):
        self.calls.append(("POST", url, json, timeout))
        if self.error:
            raise self.error
        return self.response


def client(session):
    return ApiClient("http://pos.local/api/", token="secret", timeout=5, session=session)


def test_token_sets_bearer_header():
    session = FakeSession()
    client(session)

    assert session.headers["Authorization"] == "Bearer secret"


def test_fetch_products_parses_envelope():
    session = FakeSession(FakeResponse({"products": [product_payload()]}))

    products = client(session).fetch_products(BRANCH_A)

    assert [p.id for p in products] == ["p-1"]
    assert session.calls[0] == ("GET", "http://pos.local/api/products", {"cabangId": BRANCH_A}, 5)


def test_fetch_products_accepts_bare_list():
    session = FakeSession(FakeResponse([product_payload()]))

    assert len(client(session).fetch_products(BRANCH_A)) == 1


def test_fetch_branches():
    session = FakeSession(FakeResponse({"data": [{"id": BRANCH_A, "name": "Cabang A", "isActive": True}]}))

    branches = client(session).fetch_branches()

    assert branches[0].name == "Cabang A"
    assert session.calls[0][2] == {"active": "true"}


@pytest.mark.parametrize("session", [
    FakeSession(error=requests.ConnectionError("refused")),
    FakeSession(FakeResponse(status_code=502)),
    FakeSession(FakeResponse(invalid_json=True)),
    FakeSession(FakeResponse({"products": "nope"})),
    FakeSession(FakeResponse({"products": [{"name": "no id"}]})),
])
def test_fetch_failures_become_network_errors(session):
    with pytest.raises(NetworkError):
        client(session).fetch_products(BRANCH_A)


def checkout_args():
    meta = CheckoutMetadata()
    meta.payment_method = PaymentMethod.CASH
    meta.cash_received = 20000
    lines = [CartLine("v-1", "Kopi", "", "KOPI-01", 15000, 1, 3)]
    return BRANCH_A, lines, meta


def test_submit_checkout_posts_lines_and_metadata():
    session = FakeSession(FakeResponse({"transaction": {"id": "trx-9", "total": 15000}}, status_code=201))

    record = client(session).submit_checkout(*checkout_args())

    assert record == {"id": "trx-9", "total": 15000}
    method, url, body, _ = session.calls[0]
    assert (method, url) == ("POST", "http://pos.local/api/transactions")
    assert body["cabangId"] == BRANCH_A
    assert body["items"] == [{"productVariantId": "v-1", "quantity": 1, "price": 15000}]
    assert body["paymentMethod"] == "CASH"
    assert body["discountType"] == "NOMINAL"


def test_submit_checkout_surfaces_server_message():
    session = FakeSession(FakeResponse({"error": "Stok tidak mencukupi"}, status_code=400))

    with pytest.raises(CheckoutError, match="^Stok tidak mencukupi$"):
        client(session).submit_checkout(*checkout_args())


def test_submit_checkout_without_message_uses_status():
    session = FakeSession(FakeResponse(invalid_json=True, status_code=500))

    with pytest.raises(CheckoutError, match="status 500"):
        client(session).submit_checkout(*checkout_args())


def test_submit_checkout_network_failure():
    session = FakeSession(error=requests.Timeout("slow"))

    with pytest.raises(NetworkError):
        client(session).submit_checkout(*checkout_args())


def test_fetch_categories():
    session = FakeSession(FakeResponse({"categories": [{"id": "cat-1", "name": "Minuman"}]}))

    categories = client(session).fetch_categories()

    assert [(c.id, c.name) for c in categories] == [("cat-1", "Minuman")]
    assert session.calls[0][1] == "http://pos.local/api/categories"

# api.py
import requests

from branches import Branch
from logger import get_logger
from models import Category, CheckoutError, NetworkError, Product

logger = get_logger("api")


def _unwrap(data, key):
    """Accept both a bare list and {key: [...]} / {data: [...]} envelopes."""
    if isinstance(data, dict):
        data = data.get(key, data.get('data', []))
    if not isinstance(data, list):
        raise NetworkError(f"Unexpected {key} response shape")
    return data


class ApiClient:
    """HTTP access to the catalog, branch and transaction endpoints."""
    def __init__(self, base_url: str, token=None, timeout: float = 10, session=None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        if token:
            self.session.headers['Authorization'] = f"Bearer {token}"

    def _url(self, path):
        return f"{self.base_url}/{path.lstrip('/')}"

    def _get(self, path, params=None):
        try:
            response = self.session.get(self._url(path), params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            logger.error(f"GET {path} failed: {e}")
            raise NetworkError(f"Failed to fetch {path}: {e}") from e
        except ValueError as e:
            logger.error(f"GET {path} returned invalid JSON: {e}")
            raise NetworkError(f"Invalid response from {path}: {e}") from e

    def fetch_products(self, branch_id):
        """Products with variants and per-branch stock for branch_id."""
        data = self._get("products", params={'cabangId': branch_id})
        try:
            return [Product.from_dict(p) for p in _unwrap(data, 'products')]
        except (KeyError, TypeError, ValueError) as e:
            raise NetworkError(f"Invalid product payload: {e}") from e

    def fetch_branches(self):
        data = self._get("branches", params={'active': 'true'})
        try:
            return [Branch.from_dict(b) for b in _unwrap(data, 'branches')]
        except (KeyError, TypeError) as e:
            raise NetworkError(f"Invalid branch payload: {e}") from e

    def fetch_categories(self):
        data = self._get("categories")
        try:
            return [Category.from_dict(c) for c in _unwrap(data, 'categories')]
        except (KeyError, TypeError) as e:
            raise NetworkError(f"Invalid category payload: {e}") from e

    def submit_checkout(self, branch_id, lines, metadata):
        """
        Post a sale. Returns the transaction record.
        Raises CheckoutError with the server's message when it is refused,
        NetworkError when the server cannot be reached.
        """
        body = {
            'cabangId': branch_id,
            'items': [{
                'productVariantId': line.variant_id,
                'quantity': line.quantity,
                'price': line.unit_price,
            } for line in lines],
            **metadata.to_dict(),
        }
        try:
            response = self.session.post(self._url("transactions"), json=body, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Checkout submission failed: {e}")
            raise NetworkError(f"Failed to submit transaction: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.ok:
            message = None
            if isinstance(data, dict):
                message = data.get('error') or data.get('message')
            raise CheckoutError(message or f"Checkout failed with status {response.status_code}")

        if isinstance(data, dict) and isinstance(data.get('transaction'), dict):
            return data['transaction']
        return data

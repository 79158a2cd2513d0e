import pytest

from conftest import BRANCH_A, BRANCH_B, product_payload, variant_payload
from models import NetworkError
from reconciler import StockReconciler


class RefreshSpy:
    def __init__(self, error=None):
        self.calls = 0
        self.error = error

    def __call__(self):
        self.calls += 1
        if self.error:
            raise self.error


@pytest.fixture
def refresh():
    return RefreshSpy()


@pytest.fixture
def reconciler(catalog, cart, hub, refresh):
    rec = StockReconciler(catalog, cart, hub, refresh)
    rec.subscribe(BRANCH_A)
    return rec


def stock_event(branch, variant, quantity, price=15000, **extra):
    payload = {"cabangId": branch, "productVariantId": variant, "quantity": quantity, "price": price}
    payload.update(extra)
    return payload


def test_stock_update_for_active_branch_reaches_catalog_and_cart(reconciler, catalog, cart, hub):
    cart.add_line(catalog.variant("v-1"), BRANCH_A)

    hub.publish("stock:updated", stock_event(BRANCH_A, "v-1", 8, 14000))

    assert catalog.stock_for("v-1", BRANCH_A).quantity == 8
    line = cart.line_for("v-1")
    assert (line.available_stock, line.unit_price) == (8, 14000)


def test_stock_drop_leaves_oversized_line_in_place(reconciler, catalog, cart, hub):
    hub.publish("stock:updated", stock_event(BRANCH_A, "v-2", 5, 50000))
    cart.add_line(catalog.variant("v-2"), BRANCH_A)
    cart.update_quantity("v-2", 2)

    hub.publish("stock:updated", stock_event(BRANCH_A, "v-2", 1, 50000))

    line = cart.line_for("v-2")
    assert line.available_stock == 1
    assert line.quantity == 2
    assert line.quantity > line.available_stock


def test_stock_update_for_other_branch_changes_nothing(reconciler, catalog, cart, hub):
    cart.add_line(catalog.variant("v-1"), BRANCH_A)
    catalog_before = {b: catalog.stock_for("v-1", b) for b in (BRANCH_A, BRANCH_B)}
    cart_before = cart.snapshot()

    hub.publish("stock:updated", stock_event(BRANCH_B, "v-1", 0, 1))

    assert {b: catalog.stock_for("v-1", b) for b in (BRANCH_A, BRANCH_B)} == catalog_before
    assert cart.lines == cart_before


def test_duplicate_stock_event_is_harmless(reconciler, catalog, cart, hub):
    cart.add_line(catalog.variant("v-1"), BRANCH_A)
    event = stock_event(BRANCH_A, "v-1", 2, 15000)

    hub.publish("stock:updated", event)
    hub.publish("stock:updated", event)

    assert catalog.stock_for("v-1", BRANCH_A).quantity == 2
    assert cart.line_for("v-1").available_stock == 2


def test_versioned_stale_event_is_dropped(reconciler, catalog, hub):
    hub.publish("stock:updated", stock_event(BRANCH_A, "v-1", 9, version=5))
    hub.publish("stock:updated", stock_event(BRANCH_A, "v-1", 1, version=4))

    assert catalog.stock_for("v-1", BRANCH_A).quantity == 9

    hub.publish("stock:updated", stock_event(BRANCH_A, "v-1", 6, version=6))
    assert catalog.stock_for("v-1", BRANCH_A).quantity == 6


def test_unversioned_events_are_last_event_wins(reconciler, catalog, hub):
    hub.publish("stock:updated", stock_event(BRANCH_A, "v-1", 9))
    hub.publish("stock:updated", stock_event(BRANCH_A, "v-1", 1))

    assert catalog.stock_for("v-1", BRANCH_A).quantity == 1


def test_product_updated_upserts_and_syncs_cart_for_active_branch(reconciler, catalog, cart, hub):
    cart.add_line(catalog.variant("v-2"), BRANCH_A)
    payload = product_payload("p-2", "Kaos Polos Premium", "VARIANT", [
        variant_payload("v-2", "KAOS-M", "Size M", [(BRANCH_A, 4, 60000), (BRANCH_B, 1, 1)]),
    ])

    hub.publish("product:updated", payload)

    assert catalog.product("p-2").name == "Kaos Polos Premium"
    line = cart.line_for("v-2")
    assert (line.available_stock, line.unit_price) == (4, 60000)


def test_product_updated_without_active_branch_stock_leaves_cart(reconciler, catalog, cart, hub):
    cart.add_line(catalog.variant("v-2"), BRANCH_A)
    payload = product_payload("p-2", "Kaos", "VARIANT", [
        variant_payload("v-2", "KAOS-M", "Size M", [(BRANCH_B, 1, 1)]),
    ])

    hub.publish("product:updated", payload)

    line = cart.line_for("v-2")
    assert (line.available_stock, line.unit_price) == (5, 50000)


def test_product_deleted_keeps_cart_lines(reconciler, catalog, cart, hub):
    cart.add_line(catalog.variant("v-1"), BRANCH_A)

    hub.publish("product:deleted", {"id": "p-1"})

    assert catalog.product("p-1") is None
    assert cart.line_for("v-1") is not None


@pytest.mark.parametrize("name", ["product:created", "products:refresh"])
def test_refetch_events_trigger_refresh(reconciler, hub, refresh, name):
    hub.publish(name, {})

    assert refresh.calls == 1


def test_failed_refetch_is_logged_not_raised(catalog, cart, hub, caplog):
    rec = StockReconciler(catalog, cart, hub, RefreshSpy(NetworkError("timeout")))
    rec.subscribe(BRANCH_A)

    hub.publish("products:refresh", None)

    assert len(catalog) == 3
    assert "re-fetch failed" in caplog.text


def test_disabled_reconciler_drops_events(reconciler, catalog, hub):
    reconciler.enabled = False

    hub.publish("stock:updated", stock_event(BRANCH_A, "v-1", 0))

    assert catalog.stock_for("v-1", BRANCH_A).quantity == 3


def test_malformed_event_is_logged_and_dropped(reconciler, catalog, hub, caplog):
    hub.publish("stock:updated", {"cabangId": BRANCH_A})
    hub.publish("inventory:exploded", {})

    assert catalog.stock_for("v-1", BRANCH_A).quantity == 3
    assert "Rejected inventory event" in caplog.text


def test_resubscribe_switches_branch_filter(reconciler, catalog, hub):
    reconciler.subscribe(BRANCH_B)

    hub.publish("stock:updated", stock_event(BRANCH_A, "v-1", 0))
    hub.publish("stock:updated", stock_event(BRANCH_B, "v-1", 4))

    assert hub.subscriber_count == 1
    assert catalog.stock_for("v-1", BRANCH_A).quantity == 3
    assert catalog.stock_for("v-1", BRANCH_B).quantity == 4


def test_mixed_version_types_are_compared_as_numbers(reconciler, catalog, hub):
    hub.post("stock:updated", stock_event(BRANCH_A, "v-1", 9, version=5))
    hub.post("stock:updated", stock_event(BRANCH_A, "v-1", 6, version="6"))
    hub.post("stock:updated", stock_event(BRANCH_A, "v-1", 1, version=4.0))
    hub.post("stock:updated", stock_event(BRANCH_A, "v-2", 2, 50000))

    assert hub.pump() == 4

    assert catalog.stock_for("v-1", BRANCH_A).quantity == 6
    assert catalog.stock_for("v-2", BRANCH_A).quantity == 2


def test_bad_version_is_rejected_and_later_events_still_apply(reconciler, catalog, hub, caplog):
    hub.post("stock:updated", stock_event(BRANCH_A, "v-1", 9, version=5))
    hub.post("stock:updated", stock_event(BRANCH_A, "v-1", 0, version="latest"))
    hub.post("stock:updated", stock_event(BRANCH_A, "v-2", 2, 50000))

    hub.pump()

    assert catalog.stock_for("v-1", BRANCH_A).quantity == 9
    assert catalog.stock_for("v-2", BRANCH_A).quantity == 2
    assert "Rejected inventory event" in caplog.text

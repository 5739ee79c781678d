import os
from pathlib import Path
from types import SimpleNamespace

import pytest
from protean.integrations.pytest import DomainFixture


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session")
def marketplace_bed(request):
    os.environ["PROTEAN_ENV"] = request.config.option.env

    from marketplace.domain import marketplace

    bed = DomainFixture(marketplace)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(marketplace_bed):
    with marketplace_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def gateway():
    """A fresh fake processor for every test."""
    from marketplace.payment.gateway import reset_gateway, set_gateway
    from marketplace.payment.gateway.fake_adapter import FakeGateway

    fake = FakeGateway()
    set_gateway(fake)
    yield fake
    reset_gateway()


# ---------------------------------------------------------------------------
# Principals
# ---------------------------------------------------------------------------
@pytest.fixture()
def customer():
    from marketplace.access.policy import Principal, Role

    return Principal(user_id="cust-001", role=Role.CUSTOMER)


@pytest.fixture()
def other_customer():
    from marketplace.access.policy import Principal, Role

    return Principal(user_id="cust-002", role=Role.CUSTOMER)


@pytest.fixture()
def admin():
    from marketplace.access.policy import Principal, Role

    return Principal(user_id="admin-001", role=Role.ADMIN)


@pytest.fixture()
def potter():
    from marketplace.access.policy import Principal, Role

    return Principal(user_id="vendor-potter", role=Role.VENDOR)


@pytest.fixture()
def weaver():
    from marketplace.access.policy import Principal, Role

    return Principal(user_id="vendor-weaver", role=Role.VENDOR)


# ---------------------------------------------------------------------------
# Catalog seeding
# ---------------------------------------------------------------------------
@pytest.fixture()
def add_vendor():
    from protean import current_domain

    from marketplace.catalog.vendor import Vendor

    def _add(vendor_id, shop_name=None, commission_rate=None, payout_account_id=None):
        vendor = Vendor(
            id=vendor_id,
            shop_name=shop_name or f"Shop {vendor_id}",
            commission_rate=commission_rate,
            payout_account_id=payout_account_id,
        )
        current_domain.repository_for(Vendor).add(vendor)
        return vendor

    return _add


@pytest.fixture()
def add_product():
    from protean import current_domain

    from marketplace.catalog.product import Product

    def _add(product_id, vendor_id, price, stock, name=None, is_active=True):
        product = Product(
            id=product_id,
            vendor_id=vendor_id,
            name=name or product_id,
            image=f"https://img.example.com/{product_id}.jpg",
            price=price,
            stock=stock,
            sales=0,
            is_active=is_active,
        )
        current_domain.repository_for(Product).add(product)
        return product

    return _add


@pytest.fixture()
def add_cart():
    from protean import current_domain

    from marketplace.cart.cart import Cart

    def _add(customer_id, items):
        cart = Cart.create(customer_id)
        for product_id, quantity in items:
            cart.add_item(product_id, quantity)
        current_domain.repository_for(Cart).add(cart)
        return cart

    return _add


@pytest.fixture()
def catalog(add_vendor, add_product, potter, weaver):
    """Two vendors: the potter at the default 10% without a payout account,
    the weaver at 15% with a connected account."""
    add_vendor(potter.user_id, shop_name="Clay & Co")
    add_vendor(weaver.user_id, shop_name="Loom House", commission_rate=15.0, payout_account_id="acct_weaver")
    return SimpleNamespace(
        mug=add_product("prod-mug", potter.user_id, price=25.00, stock=5, name="Speckled Mug"),
        bowl=add_product("prod-bowl", potter.user_id, price=10.00, stock=10, name="Serving Bowl"),
        scarf=add_product("prod-scarf", weaver.user_id, price=40.00, stock=3, name="Wool Scarf"),
        retired=add_product("prod-retired", potter.user_id, price=5.00, stock=10, is_active=False),
    )


@pytest.fixture()
def address():
    return {
        "full_name": "Jane Smith",
        "street": "12 Loom Lane",
        "city": "Portland",
        "state": "OR",
        "zip_code": "97201",
        "country": "US",
        "phone": "+1 503 555 0100",
    }


@pytest.fixture()
def place_order(customer, address, catalog):
    """Check out the standard two-vendor basket (2 mugs, 1 scarf) for ``customer``."""
    from marketplace.checkout.orchestrator import checkout

    def _place(principal=None, items=None):
        return checkout(
            principal or customer,
            items=items
            or [
                {"product_id": "prod-mug", "quantity": 2},
                {"product_id": "prod-scarf", "quantity": 1, "customization": "Initials: JS"},
            ],
            shipping_address=address,
        )

    return _place


@pytest.fixture()
def product_stock():
    from protean import current_domain

    from marketplace.catalog.product import Product

    def _stock(product_id):
        product = current_domain.repository_for(Product).get(product_id)
        return product.stock, product.sales

    return _stock

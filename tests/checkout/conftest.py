import pytest
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def checkout_bed():
    from checkout.domain import checkout

    bed = DomainFixture(checkout)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(checkout_bed):
    with checkout_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()

        for _, broker in current_domain.brokers.items():
            broker._data_reset()

        current_domain.event_store.store._data_reset()


@pytest.fixture()
def fake_provider():
    from checkout.verification import set_provider
    from checkout.verification.fake_adapter import FakeAgeVerificationProvider

    provider = FakeAgeVerificationProvider()
    set_provider(provider)
    return provider


@pytest.fixture()
def fake_gateway():
    from checkout.payment.gateway import set_gateway
    from checkout.payment.gateway.fake_adapter import FakeGateway

    gateway = FakeGateway()
    set_gateway(gateway)
    return gateway


@pytest.fixture()
def make_address():
    """Store an address and return it."""
    from protean import current_domain

    from checkout.address.address import Address

    def _make(**overrides):
        defaults = {
            "recipient_name": "Jane Doe",
            "line1": "100 Congress Ave",
            "city": "Austin",
            "state": "TX",
            "postal_code": "78701",
            "account_id": "acct-001",
        }
        defaults.update(overrides)
        address = Address.register(**defaults)
        current_domain.repository_for(Address).add(address)
        return address

    return _make


@pytest.fixture()
def make_product():
    """Store an active product and return it."""
    from protean import current_domain

    from checkout.catalog.product import FlavorType, Product

    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        defaults = {
            "sku": f"POUCH-{counter['n']:03d}",
            "name": "Tobacco Pouch 6mg",
            "price": 5.99,
            "nicotine_mg": 6.0,
            "net_weight_grams": 12.0,
            "flavor_type": FlavorType.TOBACCO.value,
        }
        defaults.update(overrides)
        product = Product(**defaults)
        current_domain.repository_for(Product).add(product)
        return product

    return _make

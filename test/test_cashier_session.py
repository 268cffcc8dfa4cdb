from pathlib import Path

import pytest

from conftest import add_customer, add_product, make_failing_repo, make_repo

from jpos.domain.errors import StoreUnavailableError, ValidationError
from jpos.domain.models import User
from jpos.repositories.outbox_repo import OutboxRepository
from jpos.services.cashier_service import CashierSession
from jpos.services.catalog_service import CatalogService
from jpos.services.customer_service import CustomerService
from jpos.services.sales_service import SalesService
from jpos.services.settings_service import SettingsService


class FixedFxService:
    def __init__(self, rates=None):
        self.rates = rates or {"UAH": 1.0, "USD": 40.0}

    def get_rate(self, currency):
        return self.rates[currency]


class UnavailableCustomers(CustomerService):
    def create_customer(self, name, phone, discount=0.0):
        raise StoreUnavailableError("store offline")


def _session(repo, tmp_path: Path, customers=None, outbox=None) -> CashierSession:
    user = User(id="user-1", email="c@b.co", name="C", role="cashier")
    return CashierSession(
        CatalogService(repo),
        customers or CustomerService(repo),
        SalesService(repo, outbox=outbox),
        FixedFxService(),
        SettingsService(repo),
        user,
    )


def test_full_checkout_commits_and_clears(tmp_path: Path):
    repo = make_repo(tmp_path)
    add_product(repo, "ring-1", price=1000, in_stock=3, name="Gold ring")
    add_customer(repo, "cust-1", discount=10)
    session = _session(repo, tmp_path)

    assert [p.id for p in session.search_products("gold")] == ["ring-1"]
    session.add_product("ring-1", 2)
    session.select_customer("cust-1")
    assert session.can_checkout()

    payment = session.open_payment()
    assert payment.total == pytest.approx(1800)
    outcome = session.complete_payment()

    assert outcome.committed
    assert outcome.sale.cashier_id == "user-1"
    assert session.receipt.is_empty()
    assert repo.get("product:ring-1")["inStock"] == 1
    assert repo.get("customer:cust-1")["totalPurchases"] == pytest.approx(1800)


def test_foreign_currency_payment_defaults_to_exact_cash(tmp_path: Path):
    repo = make_repo(tmp_path)
    add_product(repo, "ring-1", price=1001)
    session = _session(repo, tmp_path)
    session.add_product("ring-1")

    payment = session.open_payment("usd")
    assert payment.exchange_rate == 40
    assert payment.cash_amount == pytest.approx(25.03)
    assert payment.can_complete()


def test_checkout_requires_lines_and_payment(tmp_path: Path):
    session = _session(make_repo(tmp_path), tmp_path)
    assert not session.can_checkout()
    with pytest.raises(ValidationError):
        session.open_payment()
    with pytest.raises(ValidationError):
        session.complete_payment()


def test_customer_falls_back_to_local_record(tmp_path: Path):
    repo = make_repo(tmp_path)
    add_product(repo, "ring-1", price=100)
    session = _session(repo, tmp_path, customers=UnavailableCustomers(repo))

    customer = session.create_customer("Walk-in", "+380", 5)
    assert customer.local
    assert customer.id.startswith("local-cust")
    assert session.receipt.customer is customer

    session.add_product("ring-1")
    session.open_payment()
    outcome = session.complete_payment()
    assert outcome.sale.customer_id is None
    assert outcome.sale.customer_name == "Walk-in"
    assert repo.get_by_prefix("customer:") == []


def test_pending_retry_still_clears_receipt(tmp_path: Path):
    repo = make_failing_repo(tmp_path)
    add_product(repo, "ring-1", price=100)
    outbox = OutboxRepository(tmp_path / "outbox.db")
    outbox.init_db()
    session = _session(repo, tmp_path, outbox=outbox)

    session.add_product("ring-1")
    session.open_payment()
    outcome = session.complete_payment()

    assert outcome.status == "pending_retry"
    assert session.receipt.is_empty()
    assert outbox.count() == 1


def test_editing_receipt_invalidates_open_payment(tmp_path: Path):
    repo = make_repo(tmp_path)
    add_product(repo, "ring-1", price=100)
    session = _session(repo, tmp_path)
    session.add_product("ring-1")
    session.open_payment()
    session.set_receipt_discount(10)

    assert session.payment is None
    with pytest.raises(ValidationError):
        session.complete_payment()

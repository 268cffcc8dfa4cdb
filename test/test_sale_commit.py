from pathlib import Path

import pytest

from conftest import add_customer, add_product, make_failing_repo, make_repo

from jpos.domain.errors import NotFoundError, PaymentInsufficientError, StoreUnavailableError, ValidationError
from jpos.domain.models import Customer, Product
from jpos.domain.payment import PaymentResolver
from jpos.domain.receipt import Receipt
from jpos.repositories.outbox_repo import OutboxRepository
from jpos.services.sales_service import COMMITTED, PENDING_RETRY, SalesService


def _receipt(repo, pid: str = "ring-1", qty: int = 1) -> Receipt:
    r = Receipt()
    r.add_line(Product.from_dict(repo.get(f"product:{pid}")), qty)
    return r


def _outbox(tmp_path: Path) -> OutboxRepository:
    outbox = OutboxRepository(tmp_path / "outbox.db")
    outbox.init_db()
    return outbox


def test_commit_clamps_stock_at_zero(tmp_path: Path):
    repo = make_repo(tmp_path)
    add_product(repo, "ring-1", price=100, in_stock=2)
    sales = SalesService(repo)

    receipt = _receipt(repo, qty=5)
    outcome = sales.commit(receipt, PaymentResolver(total=receipt.total()), cashier_id="user-1")

    assert outcome.status == COMMITTED
    assert repo.get("product:ring-1")["inStock"] == 0
    stored = repo.get(f"sale:{outcome.sale.id}")
    assert stored["total"] == 500
    assert stored["cashierId"] == "user-1"


def test_commit_accrues_customer_total_purchases(tmp_path: Path):
    repo = make_repo(tmp_path)
    add_product(repo, "ring-1", price=1000)
    add_customer(repo, "cust-1", discount=10, total_purchases=200)
    sales = SalesService(repo)

    receipt = _receipt(repo)
    receipt.set_customer(Customer.from_dict(repo.get("customer:cust-1")))
    sales.commit(receipt, PaymentResolver(total=receipt.total()))

    assert repo.get("customer:cust-1")["totalPurchases"] == pytest.approx(1100)


def test_metal_payment_writes_linked_metal_transactions(tmp_path: Path):
    repo = make_repo(tmp_path)
    add_product(repo, "ring-1", price=3000)
    sales = SalesService(repo)

    receipt = _receipt(repo)
    payment = PaymentResolver(total=receipt.total(), method="metal")
    payment.add_metal_lot("gold", 585, 2)
    outcome = sales.commit(receipt, payment)

    metal = repo.get_by_prefix("metal:")
    assert len(metal) == 1
    assert metal[0]["relatedSaleId"] == outcome.sale.id
    assert metal[0]["totalValue"] == pytest.approx(3700)
    assert metal[0]["transactionType"] == "purchase"
    assert outcome.sale.change == pytest.approx(700)


def test_insufficient_payment_is_rejected_without_writes(tmp_path: Path):
    repo = make_repo(tmp_path)
    add_product(repo, "ring-1", price=100, in_stock=3)
    sales = SalesService(repo)

    receipt = _receipt(repo)
    with pytest.raises(PaymentInsufficientError):
        sales.commit(receipt, PaymentResolver(total=receipt.total(), cash_amount=50))
    with pytest.raises(ValidationError):
        sales.commit(Receipt(), PaymentResolver(total=0))

    assert repo.get_by_prefix("sale:") == []
    assert repo.get("product:ring-1")["inStock"] == 3


def test_unknown_customer_aborts_the_whole_sale(tmp_path: Path):
    repo = make_repo(tmp_path)
    add_product(repo, "ring-1", price=100, in_stock=3)
    sales = SalesService(repo)

    receipt = _receipt(repo)
    receipt.set_customer(Customer(id="ghost", name="Ghost", phone="0"))
    with pytest.raises(NotFoundError):
        sales.commit(receipt, PaymentResolver(total=receipt.total()))

    assert repo.get("product:ring-1")["inStock"] == 3


def test_failed_sale_write_rolls_back_stock_and_queues_sale(tmp_path: Path):
    repo = make_failing_repo(tmp_path)
    add_product(repo, "ring-1", price=100, in_stock=3)
    outbox = _outbox(tmp_path)
    sales = SalesService(repo, outbox=outbox, fallback="outbox")

    receipt = _receipt(repo, qty=2)
    outcome = sales.commit(receipt, PaymentResolver(total=receipt.total()))

    assert outcome.status == PENDING_RETRY
    assert not outcome.committed
    assert repo.get("product:ring-1")["inStock"] == 3
    assert repo.get_by_prefix("sale:") == []
    assert sales.pending_count() == 1


def test_outbox_flush_applies_once(tmp_path: Path):
    repo = make_failing_repo(tmp_path)
    add_product(repo, "ring-1", price=100, in_stock=3)
    outbox = _outbox(tmp_path)
    sales = SalesService(repo, outbox=outbox)

    receipt = _receipt(repo, qty=2)
    outcome = sales.commit(receipt, PaymentResolver(total=receipt.total()))
    assert sales.flush_outbox() == 0
    assert outbox.pending()[0].attempts == 1

    repo.failing = False
    assert sales.flush_outbox() == 1
    assert repo.get("product:ring-1")["inStock"] == 1
    assert repo.get(f"sale:{outcome.sale.id}") is not None

    # a duplicate queued entry for the same sale must not decrement again
    outbox.enqueue(outcome.sale.id, {"sale": outcome.sale.to_dict(), "metal": []})
    assert sales.flush_outbox() == 1
    assert repo.get("product:ring-1")["inStock"] == 1
    assert sales.pending_count() == 0


def test_strict_policy_propagates_store_failure(tmp_path: Path):
    repo = make_failing_repo(tmp_path)
    add_product(repo, "ring-1", price=100, in_stock=3)
    sales = SalesService(repo, outbox=_outbox(tmp_path), fallback="strict")

    receipt = _receipt(repo)
    with pytest.raises(StoreUnavailableError):
        sales.commit(receipt, PaymentResolver(total=receipt.total()))
    assert sales.pending_count() == 0
    assert repo.get("product:ring-1")["inStock"] == 3


def test_local_customer_is_named_but_not_linked(tmp_path: Path):
    repo = make_repo(tmp_path)
    add_product(repo, "ring-1", price=100)
    sales = SalesService(repo)

    receipt = _receipt(repo)
    receipt.set_customer(Customer(id="local-cust-1", name="Walk-in", phone="1", local=True))
    outcome = sales.commit(receipt, PaymentResolver(total=receipt.total()))

    assert outcome.sale.customer_id is None
    assert outcome.sale.customer_name == "Walk-in"


def test_payload_sale_validates_totals(tmp_path: Path):
    repo = make_repo(tmp_path)
    add_product(repo, "ring-1", price=100, in_stock=4)
    sales = SalesService(repo)
    payload = {
        "items": [{"productId": "ring-1", "productName": "Ring", "quantity": 2, "price": 100, "discount": 0}],
        "subtotal": 200,
        "total": 200,
        "paymentMethod": "cash",
        "paymentDetails": {"cash": 200, "currency": "UAH", "exchangeRate": 1},
    }

    sale = sales.create_sale_from_payload(payload, cashier_id="user-1")
    assert repo.get("product:ring-1")["inStock"] == 2
    assert sale.cashier_id == "user-1"

    with pytest.raises(ValidationError, match="Subtotal"):
        sales.create_sale_from_payload({**payload, "subtotal": 150, "total": 150})
    with pytest.raises(PaymentInsufficientError):
        sales.create_sale_from_payload({**payload, "paymentDetails": {"cash": 10}})
    with pytest.raises(ValidationError):
        sales.create_sale_from_payload({**payload, "items": []})
    assert repo.get("product:ring-1")["inStock"] == 2


def test_concurrent_receipts_decrement_from_latest_stock(tmp_path: Path):
    repo = make_repo(tmp_path)
    add_product(repo, "ring-1", price=100, in_stock=5)
    sales = SalesService(repo)
    snapshot = Product.from_dict(repo.get("product:ring-1"))

    first, second = Receipt(), Receipt()
    first.add_line(snapshot, 2)
    second.add_line(snapshot, 2)
    sales.commit(first, PaymentResolver(total=first.total()))
    sales.commit(second, PaymentResolver(total=second.total()))

    assert repo.get("product:ring-1")["inStock"] == 1


def test_customer_totals_accrue_from_latest_stored_value(tmp_path: Path):
    repo = make_repo(tmp_path)
    add_product(repo, "ring-1", price=300)
    add_customer(repo, "cust-1", total_purchases=100)
    sales = SalesService(repo)
    customer = Customer.from_dict(repo.get("customer:cust-1"))

    receipts = []
    for _ in range(2):
        r = _receipt(repo)
        r.set_customer(customer)
        receipts.append(r)
    for r in receipts:
        sales.commit(r, PaymentResolver(total=r.total()))

    assert repo.get("customer:cust-1")["totalPurchases"] == pytest.approx(700)

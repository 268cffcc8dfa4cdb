import pytest

from jpos.domain.errors import ValidationError
from jpos.domain.payment import PaymentResolver, lookup_price_per_gram


def test_can_complete_boundaries_and_change():
    p = PaymentResolver(total=100, cash_amount=99.99)
    assert not p.can_complete()

    p.set_cash_amount(100)
    assert p.can_complete()
    assert p.change() == 0

    p.set_cash_amount(150)
    assert p.can_complete()
    assert p.change() == pytest.approx(50)


def test_cent_rounding_does_not_block_exact_tender():
    p = PaymentResolver(total=0.1 + 0.2, cash_amount=0.3)
    assert p.can_complete()


def test_mixed_and_foreign_currency_tender():
    p = PaymentResolver(total=1000, method="mixed", cash_amount=10, card_amount=15, currency="USD", exchange_rate=40)
    assert p.amount_tendered() == pytest.approx(1000)
    assert p.can_complete()
    details = p.payment_details()
    assert details.cash == 10 and details.card == 15
    assert details.metal is None


def test_card_only_ignores_cash_amount():
    p = PaymentResolver(total=500, method="card", cash_amount=500, card_amount=100)
    assert p.amount_tendered() == 100
    assert not p.can_complete()
    assert p.payment_details().cash == 0


def test_metal_lot_pricing_and_repricing():
    p = PaymentResolver(total=10000, method="metal")
    lot = p.add_metal_lot("gold", 585, 4)
    assert lot.price_per_gram == 1850
    assert p.metal_total() == pytest.approx(7400)
    assert not p.can_complete()

    p.update_metal_lot(0, purity=750)
    assert p.metal_lots[0].price_per_gram == 2100
    p.update_metal_lot(0, weight=5)
    assert p.can_complete()
    assert p.change() == pytest.approx(500)


def test_price_override_survives_grade_change():
    p = PaymentResolver(total=0, method="metal")
    p.add_metal_lot("silver", 925, 10)
    p.update_metal_lot(0, price_per_gram=30)
    p.update_metal_lot(0, purity=999)
    assert p.metal_lots[0].price_per_gram == 30


def test_unknown_purity_prices_at_zero_and_is_flagged():
    assert lookup_price_per_gram("gold", 375) == (0.0, False)
    p = PaymentResolver(total=100, method="metal")
    lot = p.add_metal_lot("gold", 375, 3)
    assert lot.price_per_gram == 0
    assert lot.price_found is False


def test_invalid_inputs_are_rejected():
    with pytest.raises(ValidationError):
        PaymentResolver(total=10, method="crypto")
    p = PaymentResolver(total=10)
    with pytest.raises(ValidationError):
        p.set_exchange_rate(0)
    with pytest.raises(ValidationError):
        p.set_cash_amount(-1)
    with pytest.raises(ValidationError):
        p.add_metal_lot("bronze", 900, 1)
    with pytest.raises(ValidationError):
        p.remove_metal_lot(0)
    p.add_metal_lot("gold", 585, 1)
    with pytest.raises(ValidationError):
        p.update_metal_lot(0, colour="red")


def test_total_is_rounded_to_cents_once_and_short_tender_fails():
    assert PaymentResolver(total=100.004).total == 100.0
    assert PaymentResolver(total=100.006).total == 100.01

    short = PaymentResolver(total=100, cash_amount=99.996)
    assert not short.can_complete()

    p = PaymentResolver(total=100.006, cash_amount=100.0)
    assert not p.can_complete()
    p.set_cash_amount(100.01)
    assert p.can_complete()


@pytest.mark.parametrize(
    "metal_type, purity",
    [(5, 585), (None, 585), ("gold", "abc"), ("gold", 585.5), ("gold", None), ("gold", 0), ("gold", float("nan"))],
)
def test_malformed_metal_lot_is_a_validation_error(metal_type, purity):
    p = PaymentResolver(total=10, method="metal")
    with pytest.raises(ValidationError):
        p.add_metal_lot(metal_type, purity, 1)
    assert p.metal_lots == []

    p.add_metal_lot("gold", 585, 1)
    with pytest.raises(ValidationError):
        p.update_metal_lot(0, metal_type=metal_type, purity=purity)

import pytest

from booking_engine.domain.pricing.calculator import (
    AddOnLine,
    calculate_price,
    calculate_vat,
    deposit_amount,
)


def test_discounts_apply_in_order():
    price = calculate_price(
        100, org_discount_percent=15, add_ons=[AddOnLine(20, 1)], package_discount_percent=5
    )

    assert price.after_org_discount == pytest.approx(85)
    assert price.with_add_ons == pytest.approx(105)
    assert price.final_price == pytest.approx(99.75)


def test_org_discount_does_not_touch_add_ons():
    price = calculate_price(100, org_discount_percent=50, add_ons=[AddOnLine(10, 2)])

    assert price.add_ons_total == pytest.approx(20)
    assert price.final_price == pytest.approx(70)


def test_package_discount_covers_add_ons():
    price = calculate_price(100, add_ons=[AddOnLine(100, 1)], package_discount_percent=10)

    assert price.final_price == pytest.approx(180)


@pytest.mark.parametrize("package_discount", [None, 0])
def test_no_package_discount_leaves_subtotal(package_discount):
    price = calculate_price(80, add_ons=[AddOnLine(5, 3)], package_discount_percent=package_discount)

    assert price.final_price == price.with_add_ons == pytest.approx(95)


def test_same_inputs_same_result():
    inputs = dict(
        base_price=249.99,
        org_discount_percent=12.5,
        add_ons=[AddOnLine(19.99, 2), AddOnLine(5, 1)],
        package_discount_percent=7,
    )

    assert calculate_price(**inputs) == calculate_price(**inputs)


def test_negative_base_price_rejected():
    with pytest.raises(ValueError):
        calculate_price(-1)


def test_vat_and_deposit():
    assert calculate_vat(200, 20) == pytest.approx(40)
    assert calculate_vat(200, None) is None
    assert deposit_amount(150, 50) == pytest.approx(75)

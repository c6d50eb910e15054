"""
Tests for coupon allocation across cart items and the cart totals.
"""
from datetime import datetime, timedelta, timezone

import pytest

from cart_totals import apply_discounts_and_calculate_totals, cart_total_before_discount
from schemas import Cart, CartItem, PromoCode


def make_item(motorcycle_id: str, rent_amount: float, security_deposit: float = 0.0, quantity: int = 1) -> CartItem:
    return CartItem(
        motorcycle_id=motorcycle_id,
        quantity=quantity,
        pickup_date=datetime(2026, 10, 19),
        pickup_time="10:00",
        dropoff_date=datetime(2026, 10, 20),
        dropoff_time="10:00",
        pickup_location="Bangalore",
        dropoff_location="Bangalore",
        rent_amount=rent_amount,
        discounted_rent_amount=rent_amount,
        security_deposit=security_deposit,
    )


def make_coupon(type: str, discount_value: float, minimum_cart_value: float = 0.0) -> PromoCode:
    now = datetime.now(timezone.utc)
    return PromoCode(
        name="test",
        promo_code="test",
        type=type,
        discount_value=discount_value,
        minimum_cart_value=max(minimum_cart_value, discount_value if type == "FLAT" else 0),
        start_date=now - timedelta(days=1),
        expiry_date=now + timedelta(days=1),
    )


def make_cart(*items: CartItem, coupon: PromoCode = None) -> Cart:
    return Cart(customer_id="customer-1", items=list(items), coupon=coupon)


class TestWithoutCoupon:

    def test_totals_include_tax_and_deposit(self):
        cart = make_cart(make_item("a", 1000, security_deposit=500))
        priced = apply_discounts_and_calculate_totals(cart)

        assert priced.rent_total == 1000
        assert priced.total_tax == pytest.approx(180)
        assert priced.security_deposit_total == 500
        assert priced.discount_total == 0
        assert priced.discounted_rent_total == pytest.approx(1180)
        assert priced.discounted_total == pytest.approx(1680)
        assert priced.items[0].discounted_rent_amount == 1000
        assert cart_total_before_discount(priced) == pytest.approx(1680)

    def test_deposit_is_per_unit(self):
        priced = apply_discounts_and_calculate_totals(make_cart(make_item("a", 2000, security_deposit=500, quantity=2)))
        assert priced.security_deposit_total == 1000

    def test_empty_cart_is_all_zero(self):
        priced = apply_discounts_and_calculate_totals(make_cart(coupon=make_coupon("FLAT", 500)))
        assert priced.rent_total == 0
        assert priced.total_tax == 0
        assert priced.discounted_total == 0


class TestPercentageCoupon:

    def test_each_item_discounted_independently(self):
        cart = make_cart(make_item("a", 800), make_item("b", 200), coupon=make_coupon("PERCENTAGE", 10))
        priced = apply_discounts_and_calculate_totals(cart)

        assert [i.discounted_rent_amount for i in priced.items] == [pytest.approx(720), pytest.approx(180)]
        assert [i.total_tax for i in priced.items] == [pytest.approx(129.6), pytest.approx(32.4)]
        assert priced.discount_total == pytest.approx(100)
        assert priced.discounted_rent_total == pytest.approx(900 + 162)

    def test_full_percentage_discount_floors_at_zero(self):
        priced = apply_discounts_and_calculate_totals(
            make_cart(make_item("a", 800, security_deposit=300), coupon=make_coupon("PERCENTAGE", 100))
        )
        assert priced.items[0].discounted_rent_amount == 0
        assert priced.total_tax == 0
        assert priced.discounted_total == 300


class TestFlatCoupon:

    def test_proportional_split_is_fully_consumed_in_first_pass(self):
        cart = make_cart(make_item("a", 800), make_item("b", 200), coupon=make_coupon("FLAT", 500))
        priced = apply_discounts_and_calculate_totals(cart)

        assert priced.items[0].discounted_rent_amount == pytest.approx(400)
        assert priced.items[1].discounted_rent_amount == pytest.approx(100)
        assert priced.total_tax == pytest.approx(90)
        assert priced.discounted_rent_total == pytest.approx(590)

    @pytest.mark.parametrize("rents, discount", [
        ([333.33, 333.33, 333.34], 100),
        ([1234.5, 17.25, 999.99, 0.01], 777.77),
        ([50, 50, 50], 150),
        ([4500], 4500),
        ([3000, 7, 13], 2999.99),
    ])
    def test_discount_is_conserved(self, rents, discount):
        items = [make_item(str(i), r) for i, r in enumerate(rents)]
        priced = apply_discounts_and_calculate_totals(make_cart(*items, coupon=make_coupon("FLAT", discount)))

        applied = sum(i.rent_amount - i.discounted_rent_amount for i in priced.items)
        assert applied == pytest.approx(discount)
        assert priced.discount_total == pytest.approx(discount)
        for item in priced.items:
            assert 0 <= item.discounted_rent_amount <= item.rent_amount

    def test_discount_larger_than_rent_never_goes_negative(self):
        # Only reachable when the cart shrank after the coupon was attached
        cart = make_cart(make_item("a", 300), make_item("b", 100), coupon=make_coupon("FLAT", 1000))
        priced = apply_discounts_and_calculate_totals(cart)

        assert [i.discounted_rent_amount for i in priced.items] == [0, 0]
        assert priced.discount_total == 400

    def test_zero_rent_items_receive_no_discount(self):
        cart = make_cart(make_item("a", 0), make_item("b", 600), coupon=make_coupon("FLAT", 300))
        priced = apply_discounts_and_calculate_totals(cart)

        assert priced.items[0].discounted_rent_amount == 0
        assert priced.items[1].discounted_rent_amount == pytest.approx(300)

    def test_deposit_is_never_discounted(self):
        cart = make_cart(make_item("a", 1000, security_deposit=2000), coupon=make_coupon("FLAT", 500))
        priced = apply_discounts_and_calculate_totals(cart)

        assert priced.security_deposit_total == 2000
        assert priced.discounted_total == pytest.approx(500 + 90 + 2000)
        assert cart_total_before_discount(priced) == pytest.approx(1000 + 180 + 2000)


def test_recomputing_gives_identical_output():
    cart = make_cart(make_item("a", 800), make_item("b", 200), coupon=make_coupon("FLAT", 500))
    first = apply_discounts_and_calculate_totals(cart)
    second = apply_discounts_and_calculate_totals(first)
    assert first.model_dump() == second.model_dump()


def test_input_cart_is_not_mutated():
    cart = make_cart(make_item("a", 800), coupon=make_coupon("PERCENTAGE", 50))
    apply_discounts_and_calculate_totals(cart)
    assert cart.items[0].discounted_rent_amount == 800
    assert cart.rent_total == 0

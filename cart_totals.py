"""
Cart discount allocation and totals.

Pure functions over a Cart snapshot. The input cart is never mutated; a
priced copy is returned so repeated calls on the same snapshot give the
same figures.
"""

from schemas import Cart, CartItem, PromoCode, PromoCodeType


def _tax_on(amount: float, item: CartItem) -> float:
    return amount * (item.tax_percentage / 100)


def _apply_percentage(items, coupon: PromoCode) -> None:
    for item in items:
        discount = item.rent_amount * (coupon.discount_value / 100)
        item.discounted_rent_amount = max(0.0, item.rent_amount - discount)
        item.total_tax = _tax_on(item.discounted_rent_amount, item)


def _apply_flat(items, coupon: PromoCode, rent_total: float) -> None:
    """
    Spread a fixed discount over the items.

    First pass: each item takes its share of the full coupon value in
    proportion to its rent, capped by its own rent and by what is left.
    With the total capped at rent_total the first pass already adds up to
    the whole discount, so the second pass only mops up float rounding,
    taking it from the items in cart order down to zero.
    """
    if rent_total <= 0:
        return

    remaining = min(coupon.discount_value, rent_total)

    for item in items:
        if remaining <= 0:
            break
        share = coupon.discount_value * (item.rent_amount / rent_total)
        discount = min(share, item.rent_amount, remaining)
        item.discounted_rent_amount = max(0.0, item.rent_amount - discount)
        item.total_tax = _tax_on(item.discounted_rent_amount, item)
        remaining -= discount

    if remaining > 0:
        for item in items:
            if remaining <= 0:
                break
            discount = min(remaining, item.discounted_rent_amount)
            item.discounted_rent_amount -= discount
            item.total_tax = _tax_on(item.discounted_rent_amount, item)
            remaining -= discount


def apply_discounts_and_calculate_totals(cart: Cart) -> Cart:
    priced = cart.model_copy(deep=True)
    items = priced.items

    for item in items:
        item.discounted_rent_amount = item.rent_amount
        item.total_tax = _tax_on(item.rent_amount, item)

    priced.rent_total = sum(item.rent_amount for item in items)
    priced.security_deposit_total = sum(item.security_deposit * item.quantity for item in items)

    coupon = priced.coupon
    if coupon is not None:
        if coupon.type == PromoCodeType.PERCENTAGE:
            _apply_percentage(items, coupon)
        elif coupon.type == PromoCodeType.FLAT:
            _apply_flat(items, coupon, priced.rent_total)

    discounted_rent = sum(item.discounted_rent_amount for item in items)
    priced.total_tax = sum(item.total_tax for item in items)
    priced.discount_total = priced.rent_total - discounted_rent
    priced.discounted_rent_total = discounted_rent + priced.total_tax
    priced.discounted_total = priced.discounted_rent_total + priced.security_deposit_total
    return priced


def cart_total_before_discount(cart: Cart) -> float:
    """Rent + undiscounted tax + deposits; the figure coupon minimums are checked against."""
    rent_total = sum(item.rent_amount for item in cart.items)
    tax = sum(_tax_on(item.rent_amount, item) for item in cart.items)
    deposits = sum(item.security_deposit * item.quantity for item in cart.items)
    return rent_total + tax + deposits

"""Decimal money helpers shared by the risk validator and settlement."""

from decimal import ROUND_DOWN, ROUND_HALF_EVEN, Decimal


# 0.1% commission charged on every trade
COMMISSION_RATE = Decimal("0.001")

CENT = Decimal("0.01")
PRICE_UNIT = Decimal("0.0001")


def to_decimal(value) -> Decimal:
    """Convert a number or numeric string to Decimal without float noise."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(repr(value))
    return Decimal(str(value))


def to_money(value) -> Decimal:
    """Round to the smallest currency unit using banker's rounding."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_EVEN)


def to_price(value) -> Decimal:
    """Round a per-share price to four decimal places."""
    return to_decimal(value).quantize(PRICE_UNIT, rounding=ROUND_HALF_EVEN)


def notional(quantity: int, price: Decimal) -> Decimal:
    """Gross value of a trade before commission."""
    return to_money(Decimal(quantity) * to_decimal(price))


def commission_for(amount: Decimal) -> Decimal:
    """Commission charged on a notional amount."""
    return to_money(to_decimal(amount) * COMMISSION_RATE)


def max_affordable_quantity(balance: Decimal, price: Decimal) -> int:
    """Largest integer quantity whose notional plus commission fits the balance."""
    price = to_decimal(price)
    if price <= 0:
        return 0
    per_lot = price * (1 + COMMISSION_RATE)
    balance = to_decimal(balance)
    quantity = int((balance / per_lot).to_integral_value(rounding=ROUND_DOWN))
    # Commission rounding can move the boundary by one lot either way.
    while quantity > 0 and _total_cost(quantity, price) > balance:
        quantity -= 1
    while _total_cost(quantity + 1, price) <= balance:
        quantity += 1
    return max(quantity, 0)


def _total_cost(quantity: int, price: Decimal) -> Decimal:
    gross = notional(quantity, price)
    return gross + commission_for(gross)

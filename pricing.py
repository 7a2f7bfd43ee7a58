from datetime import date
from decimal import Decimal, ROUND_HALF_UP

CENTS = Decimal("0.01")


def rental_days(start_date: date, end_date: date) -> int:
    """Días de alquiler contando el primero y el último."""
    if start_date > end_date:
        raise ValueError(f"start_date {start_date} is after end_date {end_date}")
    return (end_date - start_date).days + 1


def to_money(value) -> Decimal:
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def calculate_total_price(car, start_date: date, end_date: date) -> Decimal:
    return to_money(to_money(car.daily_rate) * rental_days(start_date, end_date))

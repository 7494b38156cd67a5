# storefront/services/pricing.py
# Расчёт сумм заказа и генерация номера заказа.
import random
import string
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

# Бесплатная доставка строго выше порога
FREE_SHIPPING_THRESHOLD = Decimal("500")
SHIPPING_FEE = Decimal("50")
TAX_RATE = Decimal("0.18")

ORDER_NUMBER_ALPHABET = string.digits + string.ascii_uppercase
ORDER_NUMBER_SUFFIX_LENGTH = 9


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    shipping_cost: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    items_count: int

    def to_dict(self) -> dict:
        return {
            "subtotal": float(self.subtotal),
            "shipping_cost": float(self.shipping_cost),
            "tax_amount": float(self.tax_amount),
            "discount_amount": float(self.discount_amount),
            "total_amount": float(self.total_amount),
            "items_count": self.items_count,
        }


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    # через str, чтобы 0.1 не превратилось в 0.1000000000000000055...
    return Decimal(str(value))


def unit_price(base_price, price_adjustment) -> Decimal:
    return to_decimal(base_price) + to_decimal(price_adjustment)


def shipping_cost_for(subtotal: Decimal) -> Decimal:
    return Decimal("0") if subtotal > FREE_SHIPPING_THRESHOLD else SHIPPING_FEE


def compute_totals(lines: Iterable[tuple], discount_amount=Decimal("0")) -> OrderTotals:
    """
    Считает суммы по строкам (unit_price, quantity).

    Здесь округления нет, точность определяется Decimal. Колонки Numeric(12, 2)
    хранят суммы с двумя знаками, поэтому tax_amount для 333.33 в БД и в ответах
    API будет 60.00, а не 59.9994.
    """
    subtotal = Decimal("0")
    count = 0
    for price, quantity in lines:
        subtotal += to_decimal(price) * int(quantity)
        count += int(quantity)
    discount = to_decimal(discount_amount)
    shipping = shipping_cost_for(subtotal)
    tax = subtotal * TAX_RATE
    total = subtotal + shipping + tax - discount
    return OrderTotals(
        subtotal=subtotal,
        shipping_cost=shipping,
        tax_amount=tax,
        discount_amount=discount,
        total_amount=total,
        items_count=count,
    )


def generate_order_number(now_ms: int | None = None) -> str:
    """ORD-<миллисекунды epoch>-<9 символов base36 в верхнем регистре>."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    suffix = "".join(random.choices(ORDER_NUMBER_ALPHABET, k=ORDER_NUMBER_SUFFIX_LENGTH))
    return f"ORD-{now_ms}-{suffix}"


def to_minor_units(amount) -> int:
    """Сумма в основных единицах валюты -> в минимальных (пайсы) для платёжного шлюза."""
    return int((to_decimal(amount) * 100).to_integral_value())

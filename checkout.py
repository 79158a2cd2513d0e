# checkout.py
"""
Totals for the sale being built. Everything here is a pure function of
the cart lines and the discount inputs, recomputed on every call.
"""
import re

from models import DiscountType, PaymentMethod

# Indonesian mobile numbers: +62 / 62 / 0, then 8, then 8-11 digits
PHONE_PATTERN = re.compile(r'^(\+62|62|0)8[1-9][0-9]{7,10}$')


def subtotal(lines):
    return round(sum(line.unit_price * line.quantity for line in lines), 2)


def item_count(lines):
    return sum(line.quantity for line in lines)


def discount_amount(sub: float, discount: float, discount_type=DiscountType.NOMINAL):
    """Percentage discounts scale with the subtotal; nominal ones do not."""
    if DiscountType(discount_type) == DiscountType.PERCENTAGE:
        return round(sub * discount / 100, 2)
    return round(discount, 2)


def total(sub: float, discount: float, discount_type=DiscountType.NOMINAL):
    """Subtotal minus discount, never below zero."""
    return max(round(sub - discount_amount(sub, discount, discount_type), 2), 0)


def change_due(total_amount: float, cash_received: float):
    return max(round(cash_received - total_amount, 2), 0)


def summarize(lines, discount: float = 0, discount_type=DiscountType.NOMINAL):
    sub = subtotal(lines)
    return {
        'subtotal': sub,
        'discount': discount_amount(sub, discount, discount_type),
        'total': total(sub, discount, discount_type),
        'item_count': item_count(lines),
    }


def validate_checkout(lines, metadata, total_amount):
    """
    Check the checkout form before submission.
    Returns a list of messages; an empty list means the sale can go out.
    """
    errors = []
    if not lines:
        errors.append("Cart is empty")
    if metadata.discount < 0:
        errors.append("Discount cannot be negative")
    if PaymentMethod(metadata.payment_method) == PaymentMethod.CASH:
        if not metadata.cash_received or metadata.cash_received <= 0:
            errors.append("Enter the amount of cash received")
        elif metadata.cash_received < total_amount:
            errors.append("Cash received is less than the total")
    phone = (metadata.customer_phone or "").strip()
    if phone and not PHONE_PATTERN.match(phone):
        errors.append("Invalid phone number format")
    return errors

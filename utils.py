# utils.py
import re
import uuid


def generate_id(prefix: str = "") -> str:
    """Short random id, e.g. HOLD-3f9a1c2b."""
    return f"{prefix}{uuid.uuid4().hex[:8]}"


def format_currency(amount, currency="Rp"):
    """Whole-unit amount with dot thousands separators: Rp 125.000"""
    rounded = int(round(amount or 0))
    sign = "-" if rounded < 0 else ""
    digits = f"{abs(rounded):,}".replace(",", ".")
    return f"{sign}{currency} {digits}"


def stock_status(quantity: int, in_cart: int = 0):
    """
    Stock left for display once the cart is taken into account.
    Returns (available, text).
    """
    available = quantity - in_cart
    if available <= 0:
        return available, "Out of stock"
    return available, f"{available} pcs"


def format_variant_display(variant_name: str, variant_value: str) -> str:
    """Strip the attribute name off a variant value ('Size XL' -> 'XL')."""
    clean = re.sub(r'\s*\|\s*', ' ', variant_value or "").strip()

    # Plain numbers and "Word 42" style values are shown as they are
    if re.fullmatch(r'\d+', clean) or re.fullmatch(r'[a-zA-Z]+\s+\d+', clean):
        return clean

    if variant_name and clean.lower().startswith(variant_name.lower()):
        return clean[len(variant_name):].strip()

    return clean

from __future__ import annotations
from typing import Dict

TAX_RATE_PERCENT = 10
FREE_SHIPPING_THRESHOLD_CENTS = 10000
FLAT_SHIPPING_CENTS = 1500
ORDER_NUMBER_PREFIX = 'ORD-'
BULK_ORDER_NUMBER_PREFIX = 'BULK-'


def compute_totals(subtotal_cents: int) -> Dict[str, int]:
    """Tax is 10% of the subtotal; shipping is free above $100."""
    tax = (subtotal_cents * TAX_RATE_PERCENT + 50) // 100
    shipping = 0 if subtotal_cents > FREE_SHIPPING_THRESHOLD_CENTS else FLAT_SHIPPING_CENTS
    return {
        'subtotal_cents': subtotal_cents,
        'tax_cents': tax,
        'shipping_cents': shipping,
        'total_cents': subtotal_cents + tax + shipping,
    }


__all__ = [
    'TAX_RATE_PERCENT', 'FREE_SHIPPING_THRESHOLD_CENTS', 'FLAT_SHIPPING_CENTS',
    'ORDER_NUMBER_PREFIX', 'BULK_ORDER_NUMBER_PREFIX', 'compute_totals',
]

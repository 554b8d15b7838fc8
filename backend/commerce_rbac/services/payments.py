from __future__ import annotations
"""Simulated card gateway.

Stands in for a real processor: tokens starting with ``tok_decline`` are
declined, everything else is charged. No network I/O.
"""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

PAYMENT_METHODS = ('credit_card', 'bank_transfer', 'paypal', 'invoice')


class PaymentDeclined(Exception):
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


def charge(amount_cents: int, currency: str, payment_token: Optional[str], method: str, reference: str) -> Dict[str, Any]:
    if payment_token and payment_token.startswith('tok_decline'):
        raise PaymentDeclined('Payment declined by card issuer', {'gateway': 'simulation', 'reference': reference})
    return {
        'transaction_id': f'txn_{uuid.uuid4().hex[:16]}',
        'details': {
            'gateway': 'simulation',
            'card_last4': '4242' if method == 'credit_card' else None,
            'amount_cents': amount_cents,
            'currency': currency,
            'reference': reference,
            'processed_at': datetime.now(timezone.utc).isoformat(),
        },
    }


__all__ = ['PAYMENT_METHODS', 'PaymentDeclined', 'charge']

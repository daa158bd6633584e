"""
HMAC-SHA256 signing for the CrossPay redirect protocol.

Two MACs are in play:

- the outbound ``verification_token``, keyed by the merchant signing secret
  over ``invoice_id || total || currency``;
- the inbound callback ``hash``, keyed by the API key over ``invoice_id``.

Fields are concatenated in the given order with no delimiter. The order is
part of the protocol and must match on both sides.
"""
from __future__ import annotations

import hashlib
import hmac
from typing import Any, Sequence

ALGORITHM = "HMAC-SHA256"


def sign(fields: Sequence[str], secret: str) -> str:
    message = "".join(fields)
    return hmac.new(
        secret.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify(fields: Sequence[str], secret: str, candidate: Any) -> bool:
    """
    Check ``candidate`` against a freshly computed MAC.

    Uses constant-time comparison. Malformed candidates (missing, non-string,
    wrong length) return False instead of raising.
    """
    if not isinstance(candidate, str) or not candidate:
        return False
    expected = sign(fields, secret)
    return hmac.compare_digest(expected.encode("ascii"), candidate.encode("utf-8"))


def request_token(invoice_id: str, total: str, currency: str, secret: str) -> str:
    return sign([invoice_id, total, currency], secret)


def callback_hash(invoice_id: str, api_key: str) -> str:
    return sign([invoice_id], api_key)


def verify_callback_hash(invoice_id: str, api_key: str, candidate: Any) -> bool:
    return verify([invoice_id], api_key, candidate)

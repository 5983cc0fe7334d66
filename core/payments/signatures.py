from __future__ import annotations

import hashlib
import hmac

SIGNATURE_HEADERS = ("x-signature", "x-mtn-signature", "x-orange-signature", "x-pawapay-signature")


def compute_signature(body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, secret: str | None, signature: str | None) -> bool:
    if not secret or not signature:
        return False
    expected = compute_signature(body, secret)
    return hmac.compare_digest(expected, signature.strip().lower())


def signature_from_headers(headers: dict[str, str]) -> str | None:
    lowered = {key.lower(): value for key, value in headers.items()}
    for name in SIGNATURE_HEADERS:
        value = lowered.get(name)
        if value:
            return value
    return None

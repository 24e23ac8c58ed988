import hmac
from hashlib import sha512


def compute_paystack_signature(secret: str, raw_body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), msg=raw_body, digestmod=sha512).hexdigest()


def verify_paystack_signature(raw_body: bytes, signature: str | None, secret: str | None) -> bool:
    """
    Check an ``x-paystack-signature`` header against the request body.

    ``raw_body`` must be the bytes exactly as received; a re-serialized parse
    of the JSON will not hash to the same value. A missing secret or header
    rejects instead of raising so a misconfigured server fails closed.
    """
    if not secret or not signature:
        return False
    computed = compute_paystack_signature(secret, raw_body)
    return hmac.compare_digest(computed.encode("ascii"), signature.encode("utf-8", errors="replace"))

"""Webhook signature verification.

The platform signs every request with hex(HMAC-SHA256(raw_body, secret)).
"""

import hashlib
import hmac

from callhub.utils.logging import get_logger

logger = get_logger(__name__)


def compute_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_signature(raw_body: bytes, signature: str | None, secret: str | None) -> bool:
    """Validate a webhook signature over the raw request body.

    Args:
        raw_body: Request body exactly as received.
        signature: Value of the signature header, if any.
        secret: Shared secret; when unset verification is skipped.

    Returns:
        True if the request is authentic (or verification is disabled).
    """
    if not secret:
        logger.warning("webhook_signature_verification_disabled")
        return True

    if not signature:
        logger.warning("webhook_signature_missing")
        return False

    expected = compute_signature(raw_body, secret)
    # Compare bytes: str compare_digest rejects non-ASCII header values
    is_valid = hmac.compare_digest(
        signature.strip().lower().encode("utf-8"), expected.encode("ascii")
    )
    if not is_valid:
        logger.warning("webhook_invalid_signature", signature_prefix=signature[:8])
    return is_valid

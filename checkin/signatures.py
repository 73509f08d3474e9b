# checkin/signatures.py
import base64
import binascii
import hashlib
import hmac

SIGNATURE_VERSION = "v1"


def sign_payload(payload: str, timestamp: str, secret: str) -> str:
    """Return the ``v1,<base64>`` signature for ``<timestamp>.<payload>``."""
    mac = hmac.new(secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256)
    return f"{SIGNATURE_VERSION},{base64.b64encode(mac.digest()).decode('ascii')}"


def verify_webhook_signature(payload: str, signature: str, timestamp: str, secret: str) -> bool:
    """
    Check a provider signature of the form ``v1,<base64 HMAC-SHA256>``.

    The MAC covers ``"<timestamp>.<payload>"`` keyed by ``secret``. Digests are
    compared with ``hmac.compare_digest``. Never raises: any malformed input is
    a failed verification.
    """
    try:
        version, _, encoded = signature.partition(",")
        if version != SIGNATURE_VERSION or not encoded:
            return False
        supplied = base64.b64decode(encoded, validate=True)
        expected = hmac.new(
            secret.encode("utf-8"),
            f"{timestamp}.{payload}".encode("utf-8"),
            hashlib.sha256,
        ).digest()
        return hmac.compare_digest(supplied, expected)
    except (binascii.Error, ValueError, TypeError, AttributeError):
        return False

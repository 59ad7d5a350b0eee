"""Content fingerprints and store keys for the posting guards."""

import hashlib

RATE_LIMIT_KEY = "tweet:last_post_ms"


def compute_fingerprint(text: str) -> str:
    """Compute the dedup fingerprint of post text.

    The digest covers the exact bytes that will be sent, so callers must
    truncate before fingerprinting.

    Args:
        text: Final post text

    Returns:
        SHA256 hash as hex string
    """
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def get_dedup_key(fingerprint: str) -> str:
    """Get store key for the duplicate guard of a fingerprint.

    Args:
        fingerprint: SHA256 fingerprint

    Returns:
        Store key string
    """
    return f"tweet:dedup:{fingerprint}"


def get_response_key(target_id: str) -> str:
    """Get store key marking a mention as replied to.

    Args:
        target_id: Tweet ID of the mention

    Returns:
        Store key string
    """
    return f"mention:responded:{target_id}"

"""
API key hashing utilities.

Security notes:
  • SHA-256 is used for key hashing — acceptable for API keys because
    they are high-entropy random strings (not low-entropy passwords).
    It is also deterministic, which lookup-by-hash requires; a salted
    password hash (bcrypt) would make every lookup miss.
  • Raw keys use the rapi_ prefix followed by 64 hex chars. Client
    tooling pattern-matches that shape, so it is part of the contract.
  • generate_api_key() returns the raw key exactly once — the caller
    must display it to the user immediately. It is never stored.
"""

import hashlib
import re
import secrets


KEY_PREFIX = "rapi_"
DISPLAY_PREFIX_LENGTH = 12

API_KEY_PATTERN = re.compile(r"^rapi_[0-9a-f]{64}$")


def hash_api_key(raw_key: str) -> str:
    """
    Hash a raw API key using SHA-256.

    Returns the hex digest string for storage/lookup.
    """
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def generate_api_key() -> tuple[str, str]:
    """
    Generate a new API key.

    Returns:
        (raw_key, key_hash) — raw_key is shown once, key_hash is stored.
    """
    random_part = secrets.token_hex(32)  # 64 hex chars = 256 bits
    raw_key = f"{KEY_PREFIX}{random_part}"
    key_hash = hash_api_key(raw_key)
    return raw_key, key_hash


def display_prefix(raw_key: str) -> str:
    """First characters of the key, safe for logs and dashboards."""
    return raw_key[:DISPLAY_PREFIX_LENGTH]

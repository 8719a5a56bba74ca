from __future__ import annotations

from romapi.auth.hashing import (
    API_KEY_PATTERN,
    DISPLAY_PREFIX_LENGTH,
    display_prefix,
    generate_api_key,
    hash_api_key,
)


def test_generated_key_has_public_shape() -> None:
    raw_key, _key_hash = generate_api_key()
    assert raw_key.startswith("rapi_")
    assert len(raw_key) == 5 + 64
    assert API_KEY_PATTERN.match(raw_key)


def test_two_generations_never_collide() -> None:
    first, first_hash = generate_api_key()
    second, second_hash = generate_api_key()
    assert first != second
    assert first_hash != second_hash


def test_stored_hash_is_not_the_plaintext() -> None:
    raw_key, key_hash = generate_api_key()
    assert key_hash != raw_key
    assert raw_key not in key_hash
    assert len(key_hash) == 64


def test_hash_is_deterministic_for_lookup() -> None:
    raw_key, key_hash = generate_api_key()
    assert hash_api_key(raw_key) == key_hash


def test_display_prefix_is_twelve_characters() -> None:
    raw_key, _ = generate_api_key()
    assert display_prefix(raw_key) == raw_key[:DISPLAY_PREFIX_LENGTH]
    assert len(display_prefix(raw_key)) == 12

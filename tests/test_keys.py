# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Tests for the key manager: KEK derivation, session keys and key wrap.
"""

import threading
from unittest.mock import patch

import pytest

from bareos_s3.envelope import keys as keys_module
from bareos_s3.envelope.keys import (
    AES_KEY_SIZE_BYTES,
    NONCE_SIZE_BYTES,
    WRAPPED_KEY_SIZE_BYTES,
    KeyManager,
)
from bareos_s3.exceptions import IntegrityCheckError, KeyUnwrapError


def test_kek_is_deterministic_per_passphrase():
    assert KeyManager("passphrase").kek() == KeyManager("passphrase").kek()
    assert KeyManager("passphrase").kek() != KeyManager("passphrase!").kek()
    assert len(KeyManager("passphrase").kek()) == AES_KEY_SIZE_BYTES


def test_kek_uses_low_byte_of_each_character():
    """Characters are truncated to 8 bits before derivation."""
    assert KeyManager("Ł").kek() == KeyManager("A").kek()


def test_session_keys_and_nonces_have_fixed_sizes():
    manager = KeyManager("passphrase")

    assert len(manager.new_session_key()) == AES_KEY_SIZE_BYTES
    assert len(manager.new_nonce()) == NONCE_SIZE_BYTES
    assert manager.new_session_key() != manager.new_session_key()
    assert manager.new_nonce() != manager.new_nonce()


def test_wrap_unwrap_round_trips_many_keys():
    manager = KeyManager("passphrase")

    for _ in range(16):
        session_key = manager.new_session_key()
        wrapped = manager.wrap(session_key)

        assert len(wrapped) == WRAPPED_KEY_SIZE_BYTES
        assert manager.unwrap(wrapped) == session_key


def test_unwrap_with_other_passphrase_is_integrity_error():
    wrapped = KeyManager("right").wrap(KeyManager("right").new_session_key())

    with pytest.raises(KeyUnwrapError) as exc_info:
        KeyManager("wrong").unwrap(wrapped, "bb-1-Full-0001.enc")

    assert isinstance(exc_info.value, IntegrityCheckError)
    assert "bb-1-Full-0001.enc" in str(exc_info.value)


def test_unwrap_of_garbage_is_integrity_error():
    with pytest.raises(KeyUnwrapError):
        KeyManager("passphrase").unwrap(b"\0" * 5)


def test_wrap_rejects_wrong_key_length():
    with pytest.raises(ValueError):
        KeyManager("passphrase").wrap(b"short")


def test_repr_hides_passphrase():
    manager = KeyManager("super secret words")

    assert "super secret words" not in repr(manager)


def test_kek_derived_once_across_threads():
    manager = KeyManager("passphrase")
    results = []

    with patch.object(
        keys_module.KeyManager, "_derive", autospec=True, side_effect=lambda self: b"k" * 16
    ) as derive:
        threads = [
            threading.Thread(target=lambda: results.append(manager.kek()))
            for _ in range(8)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

    assert derive.call_count == 1
    assert results == [b"k" * 16] * 8


def test_prime_derives_eagerly():
    manager = KeyManager("passphrase")

    manager.prime()

    assert "derived=True" in repr(manager)

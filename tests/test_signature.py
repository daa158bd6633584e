from __future__ import annotations

import hashlib
import hmac

import pytest

from core.payments import signature


def test_sign_is_hmac_sha256_over_concatenated_fields():
    expected = hmac.new(b"secret", b"INV-110.00USD", hashlib.sha256).hexdigest()

    assert signature.sign(["INV-1", "10.00", "USD"], "secret") == expected
    assert signature.request_token("INV-1", "10.00", "USD", "secret") == expected


def test_field_order_is_part_of_the_mac():
    assert signature.sign(["INV-1", "10.00", "USD"], "secret") != signature.sign(["INV-1", "USD", "10.00"], "secret")


def test_verify_accepts_its_own_signature():
    fields = ["INV-ABC123", "99.95", "EUR"]
    mac = signature.sign(fields, "k")

    assert signature.verify(fields, "k", mac) is True


def test_verify_rejects_any_single_character_flip():
    fields = ["INV-ABC123", "99.95", "EUR"]
    mac = signature.sign(fields, "k")

    for position in range(len(mac)):
        replacement = "0" if mac[position] != "0" else "1"
        tampered = mac[:position] + replacement + mac[position + 1:]
        assert signature.verify(fields, "k", tampered) is False


def test_verify_rejects_wrong_secret():
    mac = signature.sign(["INV-1"], "right")

    assert signature.verify(["INV-1"], "wrong", mac) is False


@pytest.mark.parametrize("candidate", [None, "", 12345, b"abc", "ü" * 64, "deadbeef", "x" * 200])
def test_verify_fails_closed_on_malformed_candidates(candidate):
    assert signature.verify(["INV-1"], "k", candidate) is False


def test_callback_hash_binds_invoice_id_with_api_key():
    expected = hmac.new(b"api-key", b"INV-1", hashlib.sha256).hexdigest()

    assert signature.callback_hash("INV-1", "api-key") == expected
    assert signature.verify_callback_hash("INV-1", "api-key", expected) is True
    assert signature.verify_callback_hash("INV-2", "api-key", expected) is False

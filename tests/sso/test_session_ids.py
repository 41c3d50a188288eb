from __future__ import annotations

import hashlib
import secrets

import pytest

from sso_bridge.checksum import (
    attach_checksum,
    checksums_match,
    derive,
    parse_session_id,
    session_id,
)


def _sha(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()


def test_known_vector_for_both_purposes() -> None:
    assert attach_checksum("shop1", "abc123", "s3cr3t") == _sha("attach" + "abc123" + "s3cr3t")
    assert session_id("shop1", "abc123", "s3cr3t") == "SSO-shop1-abc123-" + _sha("session" + "abc123" + "s3cr3t")


def test_derivation_is_deterministic_and_purpose_bound() -> None:
    first = derive("session", "shop1", "abc123", "s3cr3t")
    assert first == derive("session", "shop1", "abc123", "s3cr3t")
    attach = derive("attach", "shop1", "abc123", "s3cr3t")
    assert attach == derive("attach", "shop1", "abc123", "s3cr3t")
    assert attach != first
    assert not first.endswith(attach)


def test_secret_and_token_change_both_ids() -> None:
    base_attach = attach_checksum("shop1", "abc123", "s3cr3t")
    base_session = session_id("shop1", "abc123", "s3cr3t")
    for token, secret in (("abc124", "s3cr3t"), ("abc123", "s3cr3T")):
        assert attach_checksum("shop1", token, secret) != base_attach
        assert session_id("shop1", token, secret) != base_session


def test_wrong_secrets_never_reproduce_checksum() -> None:
    expected = attach_checksum("shop1", "abc123", "s3cr3t")
    for _ in range(10_000):
        guess = secrets.token_hex(8)
        assert not checksums_match(expected, attach_checksum("shop1", "abc123", guess))


def test_unknown_purpose_rejected() -> None:
    with pytest.raises(ValueError):
        derive("login", "shop1", "abc123", "s3cr3t")  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "value",
    [
        "",
        "SSO-shop1-abc123",
        "SSO-shop1-abc123-ABCDEF",
        "sso-shop1-abc123-abcdef",
        "SSO-shop-1-abc123-abcdef",
        "SSO-shop1-abc123-abcdef\n",
    ],
)
def test_parse_rejects_malformed_ids(value: str) -> None:
    assert parse_session_id(value) is None


def test_parse_round_trip_of_derived_id() -> None:
    sid = session_id("shop1", "abc123", "s3cr3t")
    assert parse_session_id(sid) == ("shop1", "abc123", sid.rsplit("-", 1)[1])


def test_checksums_match_handles_missing_values() -> None:
    assert not checksums_match(None, "abc")
    assert not checksums_match("abc", None)
    assert not checksums_match("abc", "")
    assert checksums_match("abc", "abc")

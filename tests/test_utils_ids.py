"""Tests for record id derivation."""

from breachsearch.utils.ids import RECORD_ID_LENGTH, compute_record_id


def test_id_is_stable_and_fixed_length():
    first = compute_record_id("alice@example.com", "hunter22", "https://example.com")
    second = compute_record_id("alice@example.com", "hunter22", "https://example.com")
    assert first == second
    assert len(first) == RECORD_ID_LENGTH


def test_login_and_url_case_insensitive():
    assert compute_record_id("Alice@Example.com", "pw", "HTTPS://EXAMPLE.COM") == compute_record_id(
        "alice@example.com", "pw", "https://example.com"
    )


def test_password_case_sensitive():
    assert compute_record_id("alice", "Secret", "u") != compute_record_id("alice", "secret", "u")


def test_fields_do_not_bleed():
    assert compute_record_id("ab", "c", "d") != compute_record_id("a", "bc", "d")

from lexforge.core.hashing import json_dumps_canonical, sha256_hex, verify_digest

EMPTY_SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


def test_sha256_hex_known_vector() -> None:
    assert sha256_hex(b"") == EMPTY_SHA256
    assert len(sha256_hex(b"lexer grammar T;")) == 64


def test_verify_digest_ignores_case_and_whitespace() -> None:
    assert verify_digest(b"", EMPTY_SHA256.upper())
    assert verify_digest(b"", f"  {EMPTY_SHA256}\n")
    assert not verify_digest(b"x", EMPTY_SHA256)


def test_json_dumps_canonical_sorted_compact_unicode() -> None:
    obj1 = {"b": 2, "a": 1, "nested": {"y": 2, "x": 1}, "name": "λ"}
    obj2 = {"nested": {"x": 1, "y": 2}, "a": 1, "name": "λ", "b": 2}
    s1 = json_dumps_canonical(obj1)
    assert s1 == json_dumps_canonical(obj2)
    assert ", " not in s1 and ": " not in s1
    assert "λ" in s1

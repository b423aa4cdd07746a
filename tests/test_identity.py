"""
tests/test_identity.py — Session and IP derivation
"""
from __future__ import annotations

from starlette.requests import Request

from app.utils.identity import client_ip, get_ip_hash, get_session_id, hash_string


def _request(headers=None, client=("203.0.113.9", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/api/assign",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


def test_hash_string_is_sha256_hex():
    digest = hash_string("1.2.3.4")
    assert len(digest) == 64
    assert digest == hash_string("1.2.3.4")


def test_client_ip_prefers_first_forwarded_hop():
    req = _request({"X-Forwarded-For": "198.51.100.1, 10.0.0.1", "X-Real-IP": "10.0.0.2"})
    assert client_ip(req) == "198.51.100.1"


def test_client_ip_fallbacks():
    assert client_ip(_request({"X-Real-IP": "10.0.0.2"})) == "10.0.0.2"
    assert client_ip(_request()) == "203.0.113.9"
    assert client_ip(_request(client=None)) == "unknown"


def test_ip_hash_never_raw():
    req = _request()
    assert get_ip_hash(req) == hash_string("203.0.113.9")


def test_session_from_cookie():
    req = _request({"Cookie": "deluge_session=abc-123"})
    assert get_session_id(req) == "abc-123"


def test_session_derived_from_ip_and_user_agent():
    a = _request({"User-Agent": "Mozilla/5.0"})
    b = _request({"User-Agent": "curl/8.0"})
    assert get_session_id(a) == hash_string("session:203.0.113.9:Mozilla/5.0")
    assert get_session_id(a) != get_session_id(b)

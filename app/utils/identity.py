"""
app/utils/identity.py — Client identity for rate limiting
Session ids come from the session cookie when present; otherwise they are
derived from IP + user agent. IPs are only ever stored as SHA-256 hashes.
"""
from __future__ import annotations

import hashlib
from typing import Optional

from fastapi import Request

from app.config import get_settings

settings = get_settings()


def hash_string(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, then X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def get_ip_hash(request: Request) -> str:
    return hash_string(client_ip(request))


def get_session_id(request: Request, cookie_name: Optional[str] = None) -> str:
    cookie = request.cookies.get(cookie_name or settings.session_cookie_name)
    if cookie:
        return cookie
    user_agent = request.headers.get("user-agent", "")
    return hash_string(f"session:{client_ip(request)}:{user_agent}")

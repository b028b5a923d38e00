"""Request admission checks for the MCP endpoint.

Both gates are pure predicates: they return ``None`` to admit the request or a
``Rejection`` describing the HTTP status and message to send back.
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class Rejection:
    status_code: int
    message: str


class AuthGate:
    """Bearer token check. No configured tokens means auth is disabled."""

    def __init__(self, tokens: Iterable[str]):
        self._tokens = [t.encode("utf-8") for t in tokens if t]

    @property
    def enabled(self) -> bool:
        return bool(self._tokens)

    def check(self, headers: Mapping[str, str]) -> Optional[Rejection]:
        if not self._tokens:
            return None

        header = headers.get("authorization") or ""
        if not header.startswith(BEARER_PREFIX):
            return Rejection(401, "Authorization required. Use: Authorization: Bearer <token>")

        if not self._matches(header[len(BEARER_PREFIX):]):
            return Rejection(403, "Invalid bearer token")
        return None

    def _matches(self, token: str) -> bool:
        # no early exit: every configured token is compared
        candidate = token.encode("utf-8")
        matched = False
        for known in self._tokens:
            matched |= hmac.compare_digest(candidate, known)
        return matched


class OriginGuard:
    """Exact-match ``Origin`` allow list."""

    def __init__(self, allowed: Iterable[str], allow_missing: bool = True):
        self.allowed = frozenset(allowed)
        self.allow_missing = allow_missing

    def check(self, origin: Optional[str]) -> Optional[Rejection]:
        if origin is None:
            return None if self.allow_missing else Rejection(403, "Origin not allowed")
        if origin in self.allowed:
            return None
        return Rejection(403, "Origin not allowed")

"""
Page cursor tokens

A cursor carries the sort key (start_time, uuid) of the last record handed
out plus a fingerprint of the query that produced it. Tokens are versioned
JSON, base64url-encoded; when a secret key is configured they are
Fernet-encrypted instead, so clients can neither read nor forge them.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from ...utils.config.encrypt import FernetEncrypter, to_fernet_key
from ..core.constants import CursorConfig
from ..core.errors import InvalidCursor
from ..core.models import TimeRange, to_utc

SortKey = Tuple[datetime, str]


def query_fingerprint(metric_type: str, time_range: TimeRange, limit: int) -> str:
    """Stable digest of the (metric_type, range, limit) triple a cursor belongs to"""
    canonical = json.dumps(
        {
            "metric_type": metric_type,
            "start": time_range.start.isoformat(),
            "end": time_range.end.isoformat(),
            "limit": limit,
        },
        sort_keys=True,
        separators=(",", ":"),
    )
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
    return digest[:CursorConfig.FINGERPRINT_LENGTH]


@dataclass(frozen=True)
class CursorPayload:
    """Decoded cursor contents"""
    start_time: datetime
    uuid: str
    fingerprint: str
    version: int = CursorConfig.VERSION

    @property
    def sort_key(self) -> SortKey:
        return self.start_time, self.uuid

    def to_dict(self) -> dict:
        return {
            "v": self.version,
            "k": [self.start_time.isoformat(), self.uuid],
            "f": self.fingerprint,
        }


class CursorCodec:
    """Encodes and decodes page cursors; stateless apart from the optional key"""

    def __init__(self, secret_key: str = ""):
        self._encrypter: Optional[FernetEncrypter] = None
        if secret_key:
            self._encrypter = FernetEncrypter(to_fernet_key(secret_key))

    @property
    def encrypted(self) -> bool:
        return self._encrypter is not None

    def encode(self, sort_key: SortKey, fingerprint: str) -> str:
        start_time, uuid = sort_key
        payload = CursorPayload(start_time=to_utc(start_time), uuid=uuid, fingerprint=fingerprint)
        raw = json.dumps(payload.to_dict(), separators=(",", ":"))

        if self._encrypter:
            return self._encrypter.encrypt(raw)
        return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")

    def decode(self, token: str) -> CursorPayload:
        """
        Raises:
            InvalidCursor: malformed, foreign, or unsupported-version token
        """
        if not isinstance(token, str) or not token.strip():
            raise InvalidCursor("Cursor is empty")
        if len(token) > CursorConfig.MAX_TOKEN_LENGTH:
            raise InvalidCursor("Cursor is too long")

        token = token.strip()

        if self._encrypter:
            if not self._encrypter.is_encrypted(token):
                raise InvalidCursor("Cursor was not issued by this service")
            try:
                raw = self._encrypter.decrypt(token)
            except ValueError as e:
                raise InvalidCursor("Cursor was not issued by this service") from e
        else:
            try:
                padded = token + "=" * (-len(token) % 4)
                raw = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
            except (binascii.Error, UnicodeError, ValueError) as e:
                raise InvalidCursor("Cursor is not valid base64") from e

        try:
            document = json.loads(raw)
        except ValueError as e:
            raise InvalidCursor("Cursor is not valid JSON") from e

        return self._parse(document)

    @staticmethod
    def _parse(document) -> CursorPayload:
        if not isinstance(document, dict):
            raise InvalidCursor("Cursor payload is not an object")

        version = document.get("v")
        if isinstance(version, bool) or version != CursorConfig.VERSION:
            raise InvalidCursor(f"Unsupported cursor version: {version!r}")

        key = document.get("k")
        fingerprint = document.get("f")
        if (
            not isinstance(key, list)
            or len(key) != 2
            or not all(isinstance(part, str) for part in key)
            or not isinstance(fingerprint, str)
        ):
            raise InvalidCursor("Cursor payload is incomplete")

        try:
            start_time = datetime.fromisoformat(key[0])
        except ValueError as e:
            raise InvalidCursor("Cursor sort key is not an instant") from e

        if start_time.tzinfo is None:
            raise InvalidCursor("Cursor sort key has no time zone")

        return CursorPayload(
            start_time=to_utc(start_time),
            uuid=key[1],
            fingerprint=fingerprint,
            version=version,
        )

    def verify(self, token: str, fingerprint: str) -> CursorPayload:
        """Decode and check the cursor was issued for the query with this fingerprint"""
        payload = self.decode(token)
        if not hmac.compare_digest(payload.fingerprint.encode("utf-8"), fingerprint.encode("utf-8")):
            raise InvalidCursor(
                "Cursor does not belong to this query; restart pagination without a cursor"
            )
        return payload

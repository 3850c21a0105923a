"""Encrypted, self-contained exam session tokens.

A token is a Fernet token (AES-CBC with an HMAC-SHA256 tag) over the
canonical JSON encoding of the session: answer key, subject, purpose, issue
and expiry times. The answer key is unreadable on the client and no
character of the token can change without failing authentication. No
session is stored server side: any instance holding the signing key can
verify a token issued by any other.
"""
from __future__ import annotations

import base64
import json
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from cryptography.fernet import Fernet, InvalidToken, MultiFernet
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from archexam.core.errors import Expired, InvalidSignature, Malformed
from archexam.models.exam import CanonicalAnswer, ExamSession, Purpose, to_epoch

logger = logging.getLogger(__name__)

_FORMAT_VERSION = 1
_KEY_INFO = b"archexam.exam-session"
# base64 of version byte + timestamp + IV + one AES block + HMAC (1 + 8 + 16 + 16 + 32)
_MIN_TOKEN_LENGTH = 100

Clock = Union[datetime, int, float, None]


def derive_key(secret: bytes) -> bytes:
    """Turns an operator supplied secret of any length into a Fernet key."""
    hkdf = HKDF(algorithm=hashes.SHA256(), length=32, salt=None, info=_KEY_INFO)
    return base64.urlsafe_b64encode(hkdf.derive(secret))


class SessionCodec:
    """Encodes and verifies exam session tokens.

    ``key`` encrypts new tokens. ``previous_keys`` are still accepted when
    verifying so a key rotation does not kill exams already in progress.
    """

    def __init__(self, key: Union[str, bytes], previous_keys: Iterable[Union[str, bytes]] = ()):
        secrets = [k.encode("utf-8") if isinstance(k, str) else bytes(k) for k in (key, *previous_keys)]
        if not all(secrets):
            raise ValueError("Exam signing key must not be empty")
        self._fernet = MultiFernet([Fernet(derive_key(s)) for s in secrets])

    def encode(
        self,
        answer_key: Mapping[int, CanonicalAnswer],
        subject: Optional[str],
        purpose: Purpose,
        ttl: int,
        now: Clock = None,
    ) -> str:
        if ttl <= 0:
            raise ValueError("TTL must be a positive integer")
        if not answer_key:
            raise ValueError("An exam session needs at least one question")
        issued_at = to_epoch(now)
        payload = {
            "v": _FORMAT_VERSION,
            "sub": subject,
            "pur": Purpose(purpose).value,
            "iat": issued_at,
            "exp": issued_at + int(ttl),
            # pairs, not an object, so question order survives the round trip
            "key": [[int(qid), answer] for qid, answer in answer_key.items()],
        }
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=True)
        return self._fernet.encrypt(canonical.encode("ascii")).decode("ascii")

    def decode(self, token: Any, now: Clock = None) -> ExamSession:
        data = _token_bytes(token)
        try:
            plaintext = self._fernet.decrypt(data)
        except InvalidToken:
            raise InvalidSignature() from None
        session = _parse(plaintext)
        if session.is_expired(to_epoch(now)):
            raise Expired()
        return session


def _token_bytes(token: Any) -> bytes:
    """Rejects what cannot be a Fernet token, keeping only canonical base64."""
    if not isinstance(token, str) or len(token) < _MIN_TOKEN_LENGTH or len(token) % 4:
        raise Malformed()
    # Fernet decodes base64 leniently, so a changed padding bit would still authenticate
    try:
        data = token.encode("ascii")
        canonical = base64.urlsafe_b64encode(base64.urlsafe_b64decode(data)) == data
    except ValueError:
        canonical = False
    if not canonical:
        raise InvalidSignature()
    return data


def _parse(plaintext: bytes) -> ExamSession:
    try:
        payload = json.loads(plaintext)
        if payload["v"] != _FORMAT_VERSION:
            raise ValueError(f"unsupported token version {payload['v']!r}")
        answer_key: Dict[int, CanonicalAnswer] = {}
        for qid, answer in payload["key"]:
            if isinstance(qid, bool) or not isinstance(qid, int) or qid in answer_key:
                raise ValueError("bad question id in answer key")
            if not isinstance(answer, (str, list)):
                raise ValueError("bad answer in answer key")
            answer_key[qid] = answer
        subject = payload["sub"]
        if subject is not None and not isinstance(subject, str):
            raise ValueError("bad subject")
        return ExamSession(
            subject=subject,
            purpose=Purpose(payload["pur"]),
            answer_key=answer_key,
            issued_at=int(payload["iat"]),
            expires_at=int(payload["exp"]),
        )
    except (UnicodeError, ValueError, KeyError, TypeError) as exc:
        # authenticated with our key but unreadable: format drift, not tampering
        logger.warning("Authenticated exam token could not be read: %s", exc.__class__.__name__)
        raise Malformed() from exc

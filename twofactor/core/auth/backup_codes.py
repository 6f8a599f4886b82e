from __future__ import annotations

import hashlib
import hmac
import re
import secrets
from collections.abc import Iterable

# Uppercase letters and digits without 0/O and 1/I.
BACKUP_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
BACKUP_CODE_LENGTH = 8
DEFAULT_BACKUP_CODE_COUNT = 10

_GROUP = BACKUP_CODE_LENGTH // 2
_STRIP_PATTERN = re.compile(r"[\s-]")
_NORMALIZED_PATTERN = re.compile(r"[a-z0-9]{%d}" % BACKUP_CODE_LENGTH)


def generate_backup_codes(count: int = DEFAULT_BACKUP_CODE_COUNT) -> list[str]:
    if count <= 0:
        raise ValueError("count must be positive")
    return [_generate_backup_code() for _ in range(count)]


def hash_backup_code(code: str) -> str:
    return hashlib.sha256(_canonical(code).encode("utf-8")).hexdigest()


def is_backup_code_shape(code: str) -> bool:
    return _NORMALIZED_PATTERN.fullmatch(_normalize(code)) is not None


def find_backup_code_hash(code: str, hashes: Iterable[str]) -> str | None:
    """Return the stored hash matching ``code``, or ``None``.

    Consuming the match is the caller's job; this only reads.
    """
    candidate = hash_backup_code(code)
    for stored in hashes:
        if hmac.compare_digest(stored, candidate):
            return stored
    return None


def verify_backup_code(code: str, hashes: Iterable[str]) -> bool:
    return find_backup_code_hash(code, hashes) is not None


def _generate_backup_code() -> str:
    raw = "".join(secrets.choice(BACKUP_CODE_ALPHABET) for _ in range(BACKUP_CODE_LENGTH))
    return f"{raw[:_GROUP]}-{raw[_GROUP:]}"


def _normalize(code: str) -> str:
    return _STRIP_PATTERN.sub("", code.lower())


def _canonical(code: str) -> str:
    normalized = _normalize(code)
    return f"{normalized[:_GROUP]}-{normalized[_GROUP:]}"

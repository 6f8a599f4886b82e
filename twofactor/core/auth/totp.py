from __future__ import annotations

import base64
import hmac
import re
from dataclasses import dataclass
from time import time

import pyotp

_TOTP_PERIOD_SECONDS = 30
_TOTP_DIGITS = 6
_TOTP_WINDOW = 1
_SECRET_BYTES = 20
_CODE_PATTERN = re.compile(r"[0-9]{6}")


@dataclass(frozen=True, slots=True)
class TotpVerificationResult:
    is_valid: bool
    matched_step: int | None


def generate_totp_secret(bytes_length: int = _SECRET_BYTES) -> str:
    if bytes_length <= 0:
        raise ValueError("bytes_length must be positive")
    chars = max(32, ((bytes_length * 8) + 4) // 5)
    return pyotp.random_base32(length=chars)


def build_otpauth_uri(secret: str, *, account_name: str, issuer: str) -> str:
    normalized_secret = _normalize_secret(secret)
    return _build_totp(normalized_secret).provisioning_uri(name=account_name, issuer_name=issuer)


def is_totp_code_shape(code: str) -> bool:
    return _CODE_PATTERN.fullmatch(code) is not None


def verify_totp_code(
    secret: str,
    code: str,
    *,
    now_epoch: float | None = None,
) -> TotpVerificationResult:
    """Check ``code`` against the current, previous and next 30 second steps.

    Codes that are not exactly six ASCII digits are rejected without touching
    the secret. A malformed secret raises ``ValueError``.
    """
    if not is_totp_code_shape(code):
        return TotpVerificationResult(is_valid=False, matched_step=None)
    normalized_secret = _normalize_secret(secret)
    totp = _build_totp(normalized_secret)

    current_step = _time_step(now_epoch=now_epoch)
    for offset in range(-_TOTP_WINDOW, _TOTP_WINDOW + 1):
        step = current_step + offset
        expected = totp.at(step * _TOTP_PERIOD_SECONDS)
        if hmac.compare_digest(expected, code):
            return TotpVerificationResult(is_valid=True, matched_step=step)
    return TotpVerificationResult(is_valid=False, matched_step=None)


def _normalize_secret(secret: str) -> str:
    compact = "".join(secret.split()).upper()
    if not compact:
        raise ValueError("secret is required")
    padding = "=" * (-len(compact) % 8)
    try:
        base64.b32decode(compact + padding, casefold=True)
    except Exception as exc:
        raise ValueError("Invalid TOTP secret") from exc
    return compact


def _time_step(*, now_epoch: float | None = None) -> int:
    timestamp = int(time()) if now_epoch is None else int(now_epoch)
    return timestamp // _TOTP_PERIOD_SECONDS


def _build_totp(secret: str) -> pyotp.TOTP:
    return pyotp.TOTP(secret, digits=_TOTP_DIGITS, interval=_TOTP_PERIOD_SECONDS)

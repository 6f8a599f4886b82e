from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

from twofactor.core.auth.backup_codes import (
    DEFAULT_BACKUP_CODE_COUNT,
    find_backup_code_hash,
    generate_backup_codes,
    hash_backup_code,
    is_backup_code_shape,
)
from twofactor.core.auth.qr import qr_png_data_uri
from twofactor.core.auth.totp import build_otpauth_uri, generate_totp_secret, is_totp_code_shape, verify_totp_code
from twofactor.core.crypto import SecretEncryptor
from twofactor.core.exceptions import (
    AlreadyEnabledError,
    InvalidCodeError,
    SecretDecryptionError,
    SetupExpiredError,
    ValidationError,
)
from twofactor.core.utils.request_id import get_request_id
from twofactor.core.utils.time import Clock, system_clock
from twofactor.modules.two_factor.pending import PendingSetupStore

logger = logging.getLogger(__name__)

DEFAULT_TOTP_ISSUER = "JobTracker Pro"


@dataclass(frozen=True, slots=True)
class TwoFactorState:
    enabled: bool = False
    secret_encrypted: str | None = None
    backup_code_hashes: frozenset[str] = field(default_factory=frozenset)


class TwoFactorRepositoryProtocol(Protocol):
    async def load(self, user_id: str) -> TwoFactorState: ...

    async def save(self, user_id: str, state: TwoFactorState) -> None: ...

    async def try_consume_backup_code(self, user_id: str, code_hash: str) -> bool:
        """Remove ``code_hash`` for ``user_id`` iff it is still present.

        Must be atomic: of two concurrent calls with the same hash, exactly one
        returns ``True``.
        """
        ...


@dataclass(frozen=True, slots=True)
class TwoFactorSetup:
    qr_code_data_url: str
    backup_codes: list[str]


@dataclass(frozen=True, slots=True)
class LoginVerification:
    used_backup_code: bool


@dataclass(frozen=True, slots=True)
class TwoFactorStatus:
    enabled: bool
    backup_codes_remaining: int
    setup_pending: bool


class TwoFactorService:
    def __init__(
        self,
        repository: TwoFactorRepositoryProtocol,
        pending_setups: PendingSetupStore,
        *,
        encryptor: SecretEncryptor | None = None,
        clock: Clock = system_clock,
        issuer: str = DEFAULT_TOTP_ISSUER,
        backup_code_count: int = DEFAULT_BACKUP_CODE_COUNT,
    ) -> None:
        self._repository = repository
        self._pending_setups = pending_setups
        self._encryptor = encryptor or SecretEncryptor()
        self._clock = clock
        self._issuer = issuer
        self._backup_code_count = backup_code_count

    async def get_status(self, user_id: str) -> TwoFactorStatus:
        state = await self._repository.load(user_id)
        return TwoFactorStatus(
            enabled=state.enabled,
            backup_codes_remaining=len(state.backup_code_hashes) if state.enabled else 0,
            setup_pending=not state.enabled and self._pending_setups.get(user_id) is not None,
        )

    async def setup(self, user_id: str, account_label: str) -> TwoFactorSetup:
        state = await self._repository.load(user_id)
        if state.enabled:
            raise AlreadyEnabledError()

        secret = generate_totp_secret()
        otpauth_uri = build_otpauth_uri(secret, account_name=account_label, issuer=self._issuer)
        qr_code_data_url = qr_png_data_uri(otpauth_uri)
        backup_codes = generate_backup_codes(self._backup_code_count)
        pending = self._pending_setups.put(user_id, secret, backup_codes)

        logger.info(
            "Two-factor setup generated user_id=%s expires_at=%s request_id=%s",
            user_id,
            int(pending.expires_at),
            get_request_id(),
        )
        return TwoFactorSetup(qr_code_data_url=qr_code_data_url, backup_codes=list(backup_codes))

    async def cancel_setup(self, user_id: str) -> bool:
        removed = self._pending_setups.remove(user_id)
        if removed:
            logger.info("Two-factor setup cancelled user_id=%s request_id=%s", user_id, get_request_id())
        return removed

    async def enable(self, user_id: str, code: str) -> None:
        if not is_totp_code_shape(code):
            raise ValidationError("Code must be 6 digits")

        pending = self._pending_setups.get(user_id)
        if pending is None:
            raise SetupExpiredError()

        if not verify_totp_code(pending.secret, code, now_epoch=self._clock()).is_valid:
            logger.info("Two-factor enable rejected user_id=%s request_id=%s", user_id, get_request_id())
            raise InvalidCodeError()

        state = await self._repository.load(user_id)
        if state.enabled:
            self._pending_setups.remove(user_id, entry=pending)
            raise AlreadyEnabledError()

        await self._repository.save(
            user_id,
            TwoFactorState(
                enabled=True,
                secret_encrypted=self._encryptor.encrypt(pending.secret),
                backup_code_hashes=frozenset(hash_backup_code(backup_code) for backup_code in pending.backup_codes),
            ),
        )
        self._pending_setups.remove(user_id, entry=pending)
        logger.info("Two-factor enabled user_id=%s request_id=%s", user_id, get_request_id())

    async def verify_login(self, user_id: str, code: str) -> LoginVerification:
        _require_login_code_shape(code)

        state = await self._repository.load(user_id)
        if not state.enabled or state.secret_encrypted is None:
            raise InvalidCodeError()

        if self._verify_stored_totp(user_id, state.secret_encrypted, code):
            return LoginVerification(used_backup_code=False)

        matched = find_backup_code_hash(code, state.backup_code_hashes)
        if matched is not None and await self._repository.try_consume_backup_code(user_id, matched):
            logger.warning(
                "Backup code used for two-factor user_id=%s remaining_codes=%s request_id=%s",
                user_id,
                len(state.backup_code_hashes) - 1,
                get_request_id(),
            )
            return LoginVerification(used_backup_code=True)

        logger.info("Two-factor verification rejected user_id=%s request_id=%s", user_id, get_request_id())
        raise InvalidCodeError()

    async def disable(self, user_id: str, code: str) -> None:
        await self.verify_login(user_id, code)
        await self._repository.save(user_id, TwoFactorState())
        self._pending_setups.remove(user_id)
        logger.info("Two-factor disabled user_id=%s request_id=%s", user_id, get_request_id())

    async def regenerate_backup_codes(self, user_id: str, code: str) -> list[str]:
        await self.verify_login(user_id, code)

        state = await self._repository.load(user_id)
        if not state.enabled:
            raise InvalidCodeError()

        backup_codes = generate_backup_codes(self._backup_code_count)
        await self._repository.save(
            user_id,
            TwoFactorState(
                enabled=True,
                secret_encrypted=state.secret_encrypted,
                backup_code_hashes=frozenset(hash_backup_code(backup_code) for backup_code in backup_codes),
            ),
        )
        logger.info(
            "Backup codes regenerated user_id=%s count=%s request_id=%s",
            user_id,
            len(backup_codes),
            get_request_id(),
        )
        return backup_codes

    def _verify_stored_totp(self, user_id: str, secret_encrypted: str, code: str) -> bool:
        try:
            secret = self._encryptor.decrypt(secret_encrypted)
            return verify_totp_code(secret, code, now_epoch=self._clock()).is_valid
        except SecretDecryptionError:
            logger.error("Stored two-factor secret is corrupt user_id=%s request_id=%s", user_id, get_request_id())
            raise
        except ValueError as exc:
            logger.error("Stored two-factor secret is not base32 user_id=%s request_id=%s", user_id, get_request_id())
            raise SecretDecryptionError() from exc


def _require_login_code_shape(code: str) -> None:
    if is_totp_code_shape(code) or is_backup_code_shape(code):
        return
    raise ValidationError()

from __future__ import annotations

from dataclasses import dataclass

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from twofactor.core.config.settings import get_settings
from twofactor.core.exceptions import AuthenticationRequiredError
from twofactor.db.session import get_session
from twofactor.modules.two_factor.pending import PendingSetupStore
from twofactor.modules.two_factor.repository import TwoFactorRepository
from twofactor.modules.two_factor.service import TwoFactorService


@dataclass(slots=True)
class TwoFactorContext:
    session: AsyncSession
    repository: TwoFactorRepository
    service: TwoFactorService


def get_pending_setup_store(request: Request) -> PendingSetupStore:
    return request.app.state.pending_setup_store


def get_current_user_id(request: Request) -> str:
    """Identity of the caller, established by the host's session layer."""
    user_id = getattr(request.state, "user_id", None)
    if not isinstance(user_id, str) or not user_id.strip():
        raise AuthenticationRequiredError()
    return user_id


async def get_two_factor_context(
    session: AsyncSession = Depends(get_session),
    pending_setups: PendingSetupStore = Depends(get_pending_setup_store),
) -> TwoFactorContext:
    settings = get_settings()
    repository = TwoFactorRepository(session)
    service = TwoFactorService(
        repository,
        pending_setups,
        issuer=settings.totp_issuer,
        backup_code_count=settings.backup_code_count,
    )
    return TwoFactorContext(session=session, repository=repository, service=service)

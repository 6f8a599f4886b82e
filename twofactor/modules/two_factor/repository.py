from __future__ import annotations

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from twofactor.db.models import BackupCodeRow, TwoFactorStateRow
from twofactor.modules.two_factor.service import TwoFactorState


class TwoFactorRepository:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def load(self, user_id: str) -> TwoFactorState:
        row = await self._session.get(TwoFactorStateRow, user_id, populate_existing=True)
        if row is None:
            return TwoFactorState()
        result = await self._session.execute(select(BackupCodeRow.code_hash).where(BackupCodeRow.user_id == user_id))
        return TwoFactorState(
            enabled=row.enabled,
            secret_encrypted=row.secret_encrypted,
            backup_code_hashes=frozenset(result.scalars().all()),
        )

    async def save(self, user_id: str, state: TwoFactorState) -> None:
        try:
            await self._write(user_id, state)
            await self._session.commit()
        except IntegrityError:
            # A concurrent first save created the row; retry as an update.
            await self._session.rollback()
            await self._write(user_id, state)
            await self._session.commit()

    async def try_consume_backup_code(self, user_id: str, code_hash: str) -> bool:
        result = await self._session.execute(
            delete(BackupCodeRow).where(
                BackupCodeRow.user_id == user_id,
                BackupCodeRow.code_hash == code_hash,
            )
        )
        await self._session.commit()
        return (result.rowcount or 0) == 1

    async def _write(self, user_id: str, state: TwoFactorState) -> None:
        row = await self._session.get(TwoFactorStateRow, user_id, populate_existing=True)
        if row is None:
            row = TwoFactorStateRow(user_id=user_id)
            self._session.add(row)
        row.enabled = state.enabled
        row.secret_encrypted = state.secret_encrypted
        await self._session.execute(delete(BackupCodeRow).where(BackupCodeRow.user_id == user_id))
        self._session.add_all(
            BackupCodeRow(user_id=user_id, code_hash=code_hash) for code_hash in sorted(state.backup_code_hashes)
        )
        await self._session.flush()

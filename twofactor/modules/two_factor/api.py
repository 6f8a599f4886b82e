from __future__ import annotations

from fastapi import APIRouter, Body, Depends

from twofactor.dependencies import TwoFactorContext, get_current_user_id, get_two_factor_context
from twofactor.modules.two_factor.schemas import (
    BackupCodesResponse,
    StatusResponse,
    TwoFactorCodeRequest,
    TwoFactorSetupRequest,
    TwoFactorSetupResponse,
    TwoFactorStatusResponse,
    TwoFactorVerifyResponse,
)

router = APIRouter(prefix="/api/auth/2fa", tags=["two-factor"])


@router.get("", response_model=TwoFactorStatusResponse)
async def get_two_factor_status(
    user_id: str = Depends(get_current_user_id),
    context: TwoFactorContext = Depends(get_two_factor_context),
) -> TwoFactorStatusResponse:
    status = await context.service.get_status(user_id)
    return TwoFactorStatusResponse(
        enabled=status.enabled,
        backup_codes_count=status.backup_codes_remaining,
        setup_pending=status.setup_pending,
    )


@router.post("/setup", response_model=TwoFactorSetupResponse)
async def start_two_factor_setup(
    payload: TwoFactorSetupRequest | None = Body(default=None),
    user_id: str = Depends(get_current_user_id),
    context: TwoFactorContext = Depends(get_two_factor_context),
) -> TwoFactorSetupResponse:
    account_label = (payload.account_label if payload else None) or user_id
    setup = await context.service.setup(user_id, account_label.strip() or user_id)
    # The raw secret stays server-side; only the QR payload leaves.
    return TwoFactorSetupResponse(qr_code_data_url=setup.qr_code_data_url, backup_codes=setup.backup_codes)


@router.delete("/setup", response_model=StatusResponse)
async def cancel_two_factor_setup(
    user_id: str = Depends(get_current_user_id),
    context: TwoFactorContext = Depends(get_two_factor_context),
) -> StatusResponse:
    await context.service.cancel_setup(user_id)
    return StatusResponse()


@router.post("/enable", response_model=StatusResponse)
async def enable_two_factor(
    payload: TwoFactorCodeRequest = Body(...),
    user_id: str = Depends(get_current_user_id),
    context: TwoFactorContext = Depends(get_two_factor_context),
) -> StatusResponse:
    await context.service.enable(user_id, payload.code)
    return StatusResponse()


@router.post("/disable", response_model=StatusResponse)
async def disable_two_factor(
    payload: TwoFactorCodeRequest = Body(...),
    user_id: str = Depends(get_current_user_id),
    context: TwoFactorContext = Depends(get_two_factor_context),
) -> StatusResponse:
    await context.service.disable(user_id, payload.code)
    return StatusResponse()


@router.post("/verify", response_model=TwoFactorVerifyResponse)
async def verify_two_factor(
    payload: TwoFactorCodeRequest = Body(...),
    user_id: str = Depends(get_current_user_id),
    context: TwoFactorContext = Depends(get_two_factor_context),
) -> TwoFactorVerifyResponse:
    verification = await context.service.verify_login(user_id, payload.code)
    return TwoFactorVerifyResponse(used_backup_code=verification.used_backup_code)


@router.post("/backup-codes", response_model=BackupCodesResponse)
async def regenerate_backup_codes(
    payload: TwoFactorCodeRequest = Body(...),
    user_id: str = Depends(get_current_user_id),
    context: TwoFactorContext = Depends(get_two_factor_context),
) -> BackupCodesResponse:
    backup_codes = await context.service.regenerate_backup_codes(user_id, payload.code)
    return BackupCodesResponse(backup_codes=backup_codes)

from __future__ import annotations

from pydantic import Field

from twofactor.modules.shared.schemas import ApiModel


class TwoFactorStatusResponse(ApiModel):
    enabled: bool
    backup_codes_count: int
    setup_pending: bool


class TwoFactorSetupRequest(ApiModel):
    account_label: str | None = Field(default=None, max_length=320)


class TwoFactorSetupResponse(ApiModel):
    qr_code_data_url: str
    backup_codes: list[str]


class TwoFactorCodeRequest(ApiModel):
    code: str = Field(max_length=64)


class TwoFactorVerifyResponse(ApiModel):
    used_backup_code: bool


class BackupCodesResponse(ApiModel):
    backup_codes: list[str]


class StatusResponse(ApiModel):
    status: str = "ok"

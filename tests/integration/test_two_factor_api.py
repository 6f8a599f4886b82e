from __future__ import annotations

import time

import pyotp
import pytest

from twofactor.modules.two_factor.pending import PendingSetupStore

pytestmark = pytest.mark.integration


def _pending_secret(app, user_id: str = "user-1") -> str:
    pending = app.state.pending_setup_store.get(user_id)
    assert pending is not None
    return pending.secret


@pytest.mark.asyncio
async def test_status_defaults_to_disabled(async_client):
    response = await async_client.get("/api/auth/2fa")

    assert response.status_code == 200
    assert response.json() == {"enabled": False, "backupCodesCount": 0, "setupPending": False}
    assert response.headers["x-request-id"]


@pytest.mark.asyncio
async def test_request_id_is_echoed(async_client):
    response = await async_client.get("/api/auth/2fa", headers={"x-request-id": "req-123"})

    assert response.headers["x-request-id"] == "req-123"


@pytest.mark.asyncio
async def test_full_two_factor_flow(async_client, app_instance):
    setup = await async_client.post("/api/auth/2fa/setup", json={"accountLabel": "a@b.com"})
    assert setup.status_code == 200
    setup_payload = setup.json()
    assert set(setup_payload) == {"qrCodeDataUrl", "backupCodes"}
    assert setup_payload["qrCodeDataUrl"].startswith("data:image/png;base64,")
    backup_codes = setup_payload["backupCodes"]
    assert len(backup_codes) == 10

    status = await async_client.get("/api/auth/2fa")
    assert status.json()["setupPending"] is True

    secret = _pending_secret(app_instance)
    enable = await async_client.post("/api/auth/2fa/enable", json={"code": pyotp.TOTP(secret).now()})
    assert enable.status_code == 200
    assert enable.json() == {"status": "ok"}

    status = await async_client.get("/api/auth/2fa")
    assert status.json() == {"enabled": True, "backupCodesCount": 10, "setupPending": False}

    again = await async_client.post("/api/auth/2fa/setup", json={})
    assert again.status_code == 409
    assert again.json()["error"]["code"] == "already_enabled"

    verify = await async_client.post("/api/auth/2fa/verify", json={"code": pyotp.TOTP(secret).now()})
    assert verify.status_code == 200
    assert verify.json() == {"usedBackupCode": False}

    backup = await async_client.post("/api/auth/2fa/verify", json={"code": backup_codes[0].lower()})
    assert backup.status_code == 200
    assert backup.json() == {"usedBackupCode": True}

    reused = await async_client.post("/api/auth/2fa/verify", json={"code": backup_codes[0]})
    assert reused.status_code == 400
    assert reused.json()["error"] == {"code": "invalid_code", "message": "Invalid verification code"}

    regenerate = await async_client.post("/api/auth/2fa/backup-codes", json={"code": pyotp.TOTP(secret).now()})
    assert regenerate.status_code == 200
    new_codes = regenerate.json()["backupCodes"]
    assert len(new_codes) == 10
    assert (await async_client.get("/api/auth/2fa")).json()["backupCodesCount"] == 10

    stale = await async_client.post("/api/auth/2fa/verify", json={"code": backup_codes[1]})
    assert stale.status_code == 400

    disable = await async_client.post("/api/auth/2fa/disable", json={"code": new_codes[0]})
    assert disable.status_code == 200

    status = await async_client.get("/api/auth/2fa")
    assert status.json() == {"enabled": False, "backupCodesCount": 0, "setupPending": False}


@pytest.mark.asyncio
async def test_setup_is_scoped_per_user(async_client, app_instance):
    await async_client.post("/api/auth/2fa/setup", json={}, headers={"x-test-user": "alice"})

    alice = await async_client.get("/api/auth/2fa", headers={"x-test-user": "alice"})
    bob = await async_client.get("/api/auth/2fa", headers={"x-test-user": "bob"})

    assert alice.json()["setupPending"] is True
    assert bob.json()["setupPending"] is False
    secret = _pending_secret(app_instance, "alice")
    wrong_user = await async_client.post(
        "/api/auth/2fa/enable",
        json={"code": pyotp.TOTP(secret).now()},
        headers={"x-test-user": "bob"},
    )
    assert wrong_user.status_code == 400
    assert wrong_user.json()["error"]["code"] == "setup_expired"


@pytest.mark.asyncio
async def test_enable_rejects_malformed_code(async_client):
    await async_client.post("/api/auth/2fa/setup", json={})

    response = await async_client.post("/api/auth/2fa/enable", json={"code": "12345"})

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "validation_error"


@pytest.mark.asyncio
async def test_enable_rejects_missing_code_field(async_client):
    response = await async_client.post("/api/auth/2fa/enable", json={})

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "validation_error"


@pytest.mark.asyncio
async def test_wrong_code_keeps_setup_pending(async_client, app_instance):
    await async_client.post("/api/auth/2fa/setup", json={})
    secret = _pending_secret(app_instance)
    totp = pyotp.TOTP(secret)
    now = time.time()
    window = {totp.at(now + step * 30) for step in (-1, 0, 1)}
    wrong = next(code for code in ("000000", "111111", "222222", "333333") if code not in window)

    response = await async_client.post("/api/auth/2fa/enable", json={"code": wrong})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "invalid_code"

    retry = await async_client.post("/api/auth/2fa/enable", json={"code": totp.now()})
    assert retry.status_code == 200


@pytest.mark.asyncio
async def test_cancel_setup(async_client):
    await async_client.post("/api/auth/2fa/setup", json={})

    cancel = await async_client.delete("/api/auth/2fa/setup")

    assert cancel.status_code == 200
    assert (await async_client.get("/api/auth/2fa")).json()["setupPending"] is False


@pytest.mark.asyncio
async def test_enable_after_expiry_reports_setup_expired(app_instance):
    from httpx import ASGITransport, AsyncClient

    clock = {"now": 1_700_000_000.0}
    app_instance.state.pending_setup_store = PendingSetupStore(ttl_seconds=600, clock=lambda: clock["now"])

    async with app_instance.router.lifespan_context(app_instance):
        transport = ASGITransport(app=app_instance)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            await client.post("/api/auth/2fa/setup", json={})
            secret = _pending_secret(app_instance)
            clock["now"] += 601

            response = await client.post("/api/auth/2fa/enable", json={"code": pyotp.TOTP(secret).now()})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "setup_expired"


@pytest.mark.asyncio
async def test_verify_when_disabled_is_generic_invalid_code(async_client):
    response = await async_client.post("/api/auth/2fa/verify", json={"code": "123456"})

    assert response.status_code == 400
    assert response.json()["error"]["message"] == "Invalid verification code"


@pytest.mark.asyncio
async def test_requests_without_identity_are_rejected(app_instance):
    from httpx import ASGITransport, AsyncClient

    from twofactor.dependencies import get_current_user_id

    app_instance.dependency_overrides.pop(get_current_user_id)
    async with app_instance.router.lifespan_context(app_instance):
        transport = ASGITransport(app=app_instance)
        async with AsyncClient(transport=transport, base_url="http://testserver") as client:
            response = await client.get("/api/auth/2fa")

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "authentication_required"

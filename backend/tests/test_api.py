"""Tests for API endpoints."""
import uuid

import pytest
from sqlalchemy import select, update

from sinhala_scribe.core.exceptions import DatabaseError, TranscriptionProviderError, TranscriptionTimeout
from sinhala_scribe.crud.crud_profile import profile_crud
from sinhala_scribe.models.models import CreditTransaction, CreditTransactionType, Profile
from tests.utils import make_token

CHUNK = {"audio": "UklGRiQAAABXQVZF", "chunkIndex": 0, "totalChunks": 2}


async def set_credits(db, user_id, credits: int) -> None:
    await db.execute(update(Profile).where(Profile.id == user_id).values(credits=credits))
    await db.commit()


async def balance(client, headers) -> int:
    response = await client.get("/api/v1/credits/balance", headers=headers)
    assert response.status_code == 200
    return response.json()["credits"]


async def test_health(client) -> None:
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Request-ID" in response.headers


async def test_requires_bearer_token(client) -> None:
    response = await client.get("/api/v1/credits/balance")

    assert response.status_code == 401
    assert response.json()["code"] == "invalid_credentials"


async def test_rejects_bad_token(client) -> None:
    response = await client.get("/api/v1/credits/balance", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401

    token = make_token("not-a-uuid")
    response = await client.get("/api/v1/credits/balance", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


async def test_new_profile_gets_free_credits(client, db, auth_headers, user_id) -> None:
    assert await balance(client, auth_headers) == 30

    result = await db.execute(select(CreditTransaction).where(CreditTransaction.user_id == user_id))
    ledger = result.scalars().all()
    assert len(ledger) == 1
    assert ledger[0].type == CreditTransactionType.SIGNUP_BONUS
    assert ledger[0].balance_after == 30


async def test_credit_packages(client) -> None:
    response = await client.get("/api/v1/credits/packages")

    assert response.status_code == 200
    packages = {p["id"]: p for p in response.json()}
    assert set(packages) == {"pack_10", "pack_50", "pack_100"}
    assert packages["pack_50"]["popular"] is True
    assert packages["pack_100"]["credits"] == 100


@pytest.mark.parametrize("duration, required, can_proceed", [
    (125.0, 3, True),
    (60.0, 1, True),
    (0.5, 1, True),
    (1801.0, 31, False),
])
async def test_analyze(client, auth_headers, duration, required, can_proceed) -> None:
    response = await client.post(
        "/api/v1/transcribe/analyze", json={"durationSeconds": duration}, headers=auth_headers
    )

    assert response.status_code == 200
    assert response.json() == {
        "durationSeconds": duration,
        "requiredCredits": required,
        "currentCredits": 30,
        "canProceed": can_proceed,
    }


async def test_analyze_rejects_non_positive_duration(client, auth_headers) -> None:
    response = await client.post("/api/v1/transcribe/analyze", json={"durationSeconds": 0}, headers=auth_headers)

    assert response.status_code == 422


async def test_chunk_deducts_one_credit(client, auth_headers, provider) -> None:
    provider.texts = ["පළමු කොටස"]

    response = await client.post("/api/v1/transcribe/chunk", json=CHUNK, headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {
        "text": "පළමු කොටස",
        "creditsRemaining": 29,
        "chunkIndex": 0,
        "creditsEstimated": False,
    }
    assert provider.calls == 1
    assert await balance(client, auth_headers) == 29


async def test_chunk_accepts_snake_case(client, auth_headers) -> None:
    body = {"audio": "AAAA", "chunk_index": 1, "total_chunks": 2}

    response = await client.post("/api/v1/transcribe/chunk", json=body, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["chunkIndex"] == 1


async def test_chunk_without_credit_is_402(client, db, auth_headers, user_id, provider) -> None:
    await balance(client, auth_headers)
    await set_credits(db, user_id, 0)

    response = await client.post("/api/v1/transcribe/chunk", json=CHUNK, headers=auth_headers)

    assert response.status_code == 402
    assert response.json()["code"] == "insufficient_credits"
    assert provider.calls == 0


async def test_chunk_provider_failure_costs_nothing(client, auth_headers, provider) -> None:
    provider.error = TranscriptionProviderError("boom", status_code=500, detail="internal")

    response = await client.post("/api/v1/transcribe/chunk", json=CHUNK, headers=auth_headers)

    assert response.status_code == 502
    assert provider.calls == 1
    assert await balance(client, auth_headers) == 30


async def test_chunk_provider_timeout_is_504(client, auth_headers, provider) -> None:
    provider.error = TranscriptionTimeout("too slow")

    response = await client.post("/api/v1/transcribe/chunk", json=CHUNK, headers=auth_headers)

    assert response.status_code == 504
    assert await balance(client, auth_headers) == 30


async def test_chunk_keeps_text_when_deduction_fails(client, auth_headers, provider, monkeypatch) -> None:
    async def failing_deduct(*args, **kwargs):
        raise DatabaseError("Credit deduction failed")

    monkeypatch.setattr(profile_crud, "deduct_credit", failing_deduct)
    provider.texts = ["සුරක්ෂිතයි"]

    response = await client.post("/api/v1/transcribe/chunk", json=CHUNK, headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["text"] == "සුරක්ෂිතයි"
    assert data["creditsRemaining"] == 29
    assert data["creditsEstimated"] is True
    assert await balance(client, auth_headers) == 30


async def test_chunk_index_must_be_in_range(client, auth_headers, provider) -> None:
    body = {"audio": "AAAA", "chunkIndex": 2, "totalChunks": 2}

    response = await client.post("/api/v1/transcribe/chunk", json=body, headers=auth_headers)

    assert response.status_code == 422
    assert provider.calls == 0


async def test_chunk_too_large_is_413(client, auth_headers, provider, monkeypatch) -> None:
    from sinhala_scribe.core.config import settings

    monkeypatch.setattr(settings, "MAX_UPLOAD_SIZE", 8)

    response = await client.post(
        "/api/v1/transcribe/chunk", json={**CHUNK, "audio": "A" * 64}, headers=auth_headers
    )

    assert response.status_code == 413
    assert provider.calls == 0


async def test_save_list_and_delete(client, auth_headers) -> None:
    response = await client.post("/api/v1/transcribe/save", json={
        "text": "ආයුබෝවන් ලංකාව",
        "durationSeconds": 125.4,
        "creditsUsed": 3,
        "isPartial": True,
    }, headers=auth_headers)
    assert response.status_code == 200
    transcription_id = response.json()["transcriptionId"]
    uuid.UUID(transcription_id)

    response = await client.get("/api/v1/transcriptions/", headers=auth_headers)
    assert response.status_code == 200
    page = response.json()
    assert page["total"] == 1
    item = page["items"][0]
    assert item["id"] == transcription_id
    assert item["transcriptionText"] == "ආයුබෝවන් ලංකාව"
    assert item["audioDurationSeconds"] == 125
    assert item["creditsUsed"] == 3
    assert item["isPartial"] is True

    response = await client.delete(f"/api/v1/transcriptions/{transcription_id}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json() == {"success": True}

    response = await client.get("/api/v1/transcriptions/", headers=auth_headers)
    assert response.json()["total"] == 0

    response = await client.delete(f"/api/v1/transcriptions/{transcription_id}", headers=auth_headers)
    assert response.status_code == 404


async def test_list_is_scoped_to_owner(client, auth_headers) -> None:
    other_headers = {"Authorization": f"Bearer {make_token(uuid.uuid4())}"}
    response = await client.post("/api/v1/transcribe/save", json={
        "text": "මගේ", "durationSeconds": 10, "creditsUsed": 1, "isPartial": False,
    }, headers=auth_headers)
    transcription_id = response.json()["transcriptionId"]

    response = await client.get("/api/v1/transcriptions/", headers=other_headers)
    assert response.json()["total"] == 0

    response = await client.delete(f"/api/v1/transcriptions/{transcription_id}", headers=other_headers)
    assert response.status_code == 404


async def test_save_rejects_empty_text(client, auth_headers) -> None:
    response = await client.post("/api/v1/transcribe/save", json={
        "text": "", "durationSeconds": 10, "creditsUsed": 1, "isPartial": False,
    }, headers=auth_headers)

    assert response.status_code == 422

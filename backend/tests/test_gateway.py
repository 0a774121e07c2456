"""Tests for the HTTP gateway used by the client pipeline."""
import json

import httpx
import numpy as np
import pytest

from sinhala_scribe.audio.chunker import Chunker
from sinhala_scribe.audio.source import AudioSource
from sinhala_scribe.core.exceptions import (
    EstimationError,
    InsufficientCredit,
    PersistenceError,
    TranscriptionProviderError,
    TranscriptionTimeout,
)
from sinhala_scribe.main import app
from sinhala_scribe.pipeline import ApiGateway, PipelineState
from sinhala_scribe.pipeline.orchestrator import ChunkPipeline
from tests.utils import StaticDecoder


def gateway_answering(status_code: int, body=None, seen: list = None) -> ApiGateway:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return httpx.Response(status_code, json=body if body is not None else {"detail": "nope"})

    return ApiGateway("http://scribe.test", "token-1", transport=httpx.MockTransport(handler))


async def test_transcribe_segment_request() -> None:
    seen = []
    body = {"text": "ආයුබෝවන්", "creditsRemaining": 12, "chunkIndex": 1, "creditsEstimated": True}

    async with gateway_answering(200, body, seen) as gateway:
        result = await gateway.transcribe_segment("AAAA", 1, 3)

    assert result.text == "ආයුබෝවන්"
    assert result.credits_remaining == 12
    assert result.credits_estimated is True
    request = seen[0]
    assert request.url.path == "/api/v1/transcribe/chunk"
    assert request.headers["Authorization"] == "Bearer token-1"
    assert json.loads(request.content) == {"audio": "AAAA", "chunkIndex": 1, "totalChunks": 3}


@pytest.mark.parametrize("status_code, error", [
    (402, InsufficientCredit),
    (504, TranscriptionTimeout),
    (502, TranscriptionProviderError),
    (500, TranscriptionProviderError),
])
async def test_transcribe_segment_errors(status_code, error) -> None:
    async with gateway_answering(status_code) as gateway:
        with pytest.raises(error):
            await gateway.transcribe_segment("AAAA", 0, 1)


async def test_transport_timeout_is_a_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    async with ApiGateway("http://scribe.test", "t", transport=httpx.MockTransport(handler)) as gateway:
        with pytest.raises(TranscriptionTimeout):
            await gateway.transcribe_segment("AAAA", 0, 1)


async def test_estimate_and_balance() -> None:
    body = {"durationSeconds": 125.0, "requiredCredits": 3, "currentCredits": 2, "canProceed": False, "credits": 2}

    async with gateway_answering(200, body) as gateway:
        estimate = await gateway.estimate(125.0)
        credits = await gateway.fetch_credit_balance()

    assert estimate.required_credits == 3
    assert estimate.can_proceed is False
    assert credits == 2


async def test_estimate_failure() -> None:
    async with gateway_answering(503) as gateway:
        with pytest.raises(EstimationError):
            await gateway.estimate(10.0)


async def test_persist_failure() -> None:
    async with gateway_answering(500) as gateway:
        with pytest.raises(PersistenceError):
            await gateway.persist_transcript("text", 10.0, 1, False)


async def test_pipeline_against_service(client, auth_headers, provider) -> None:
    """Full run through the real endpoints with a fake provider."""
    provider.texts = ["පළමු", "දෙවන", "තෙවන"]
    token = auth_headers["Authorization"].split(" ", 1)[1]
    decoder = StaticDecoder(np.zeros(500), 100)

    async with ApiGateway("http://test", token, transport=httpx.ASGITransport(app=app)) as gateway:
        pipeline = ChunkPipeline(
            gateway, chunker=Chunker(decoder=decoder, chunk_duration=2, sample_rate=100), retry_delay=0
        )
        estimate = await pipeline.analyze(AudioSource(data=b"x", filename="clip.wav"))
        run = await pipeline.start()

    assert estimate.current_credits == 30
    assert pipeline.state == PipelineState.DONE
    assert run.accumulated_text == "පළමු දෙවන තෙවන"
    assert run.credits_remaining == 27
    assert run.persisted is True

    response = await client.get("/api/v1/transcriptions/", headers=auth_headers)
    item = response.json()["items"][0]
    assert item["id"] == run.transcript_id
    assert item["creditsUsed"] == 3
    assert item["audioDurationSeconds"] == 5


@pytest.mark.parametrize("response", [
    httpx.Response(200, text="<html>bad gateway</html>"),
    httpx.Response(200, json={"text": "a"}),
    httpx.Response(200, json={"text": "a", "creditsRemaining": "many"}),
    httpx.Response(200, json=["a"]),
])
async def test_unreadable_chunk_body_is_provider_error(response) -> None:
    transport = httpx.MockTransport(lambda request: response)

    async with ApiGateway("http://scribe.test", "t", transport=transport) as gateway:
        with pytest.raises(TranscriptionProviderError):
            await gateway.transcribe_segment("AAAA", 0, 1)


async def test_unreadable_chunk_body_ends_partial() -> None:
    calls = []
    saved = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/transcribe/analyze"):
            return httpx.Response(200, json={
                "durationSeconds": 5.0, "requiredCredits": 1, "currentCredits": 30, "canProceed": True,
            })
        if request.url.path.endswith("/transcribe/save"):
            saved.append(json.loads(request.content))
            return httpx.Response(200, json={"success": True, "transcriptionId": "t-1"})

        chunk_index = json.loads(request.content)["chunkIndex"]
        calls.append(chunk_index)
        if chunk_index == 0:
            return httpx.Response(200, json={"text": "a", "creditsRemaining": 29, "chunkIndex": 0})
        return httpx.Response(200, text="<html>bad gateway</html>")

    decoder = StaticDecoder(np.zeros(500), 100)
    async with ApiGateway("http://scribe.test", "t", transport=httpx.MockTransport(handler)) as gateway:
        pipeline = ChunkPipeline(
            gateway, chunker=Chunker(decoder=decoder, chunk_duration=2, sample_rate=100), retry_delay=0
        )
        await pipeline.analyze(AudioSource(data=b"x", filename="clip.wav"))
        run = await pipeline.start()

    assert calls == [0, 1, 1, 1]
    assert pipeline.state == PipelineState.PARTIAL
    assert run.accumulated_text == "a"
    assert saved == [{"text": "a", "durationSeconds": 5.0, "creditsUsed": 1, "isPartial": True}]

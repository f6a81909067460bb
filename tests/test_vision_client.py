import asyncio
from types import SimpleNamespace

import pytest

from errors import UpstreamCallError
from settings import ResponseMode, Settings
from vision import FOOD_PROMPT, FOOD_RESPONSE_SCHEMA, GeminiVisionClient, UploadedImage, analyze_food

IMAGE = UploadedImage(data=b"\x89PNG fake", mime_type="image/png")


class FakeModels:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.requests = []

    async def generate_content(self, *, model, contents, config=None):
        self.requests.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.text)


def _client(models, mode):
    genai_client = SimpleNamespace(aio=SimpleNamespace(models=models))
    return GeminiVisionClient(api_key="k", model="gemini-2.0-flash", response_mode=mode, client=genai_client)


def test_schema_mode_requests_json_with_schema():
    models = FakeModels(text='{"nama_makanan": "Soto", "jumlah_kalori": 300, "bahan_utama": ["ayam"]}')
    client = _client(models, ResponseMode.SCHEMA_CONSTRAINED)

    result = asyncio.run(analyze_food(client, IMAGE))

    assert result.nama_makanan == "Soto"
    request = models.requests[0]
    assert request["model"] == "gemini-2.0-flash"
    assert request["config"].response_mime_type == "application/json"
    assert request["config"].response_schema == FOOD_RESPONSE_SCHEMA
    assert set(FOOD_RESPONSE_SCHEMA.required) == {"nama_makanan", "jumlah_kalori", "bahan_utama"}


def test_prompt_mode_sends_no_schema():
    models = FakeModels(text='```json\n{"nama_makanan": "Soto", "jumlah_kalori": 300, "bahan_utama": ["ayam"]}\n```')
    client = _client(models, ResponseMode.PROMPT_ONLY)

    result = asyncio.run(analyze_food(client, IMAGE))

    assert result.bahan_utama == ["ayam"]
    assert models.requests[0]["config"] is None


def test_request_carries_prompt_and_inline_image():
    models = FakeModels(text="{}")
    reply = asyncio.run(_client(models, ResponseMode.PROMPT_ONLY).generate(FOOD_PROMPT, IMAGE))

    assert reply.text == "{}"
    prompt, part = models.requests[0]["contents"]
    assert prompt == FOOD_PROMPT
    assert part.inline_data.data == IMAGE.data
    assert part.inline_data.mime_type == "image/png"


def test_sdk_errors_surface_as_upstream_call_error():
    models = FakeModels(error=RuntimeError("429 RESOURCE_EXHAUSTED"))
    client = _client(models, ResponseMode.SCHEMA_CONSTRAINED)

    with pytest.raises(UpstreamCallError) as exc_info:
        asyncio.run(client.generate(FOOD_PROMPT, IMAGE))
    assert exc_info.value.details == "429 RESOURCE_EXHAUSTED"
    assert exc_info.value.status_code == 500


def test_from_settings_uses_configured_mode():
    settings = Settings(environ={"GEMINI_API_KEY": "k", "GEMINI_MODEL": "gemini-x", "RESPONSE_MODE": "prompt"})
    client = GeminiVisionClient.from_settings(settings)
    assert client.model == "gemini-x"
    assert client.response_mode is ResponseMode.PROMPT_ONLY

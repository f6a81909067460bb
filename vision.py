"""
Food image analysis via Google Gemini (google-genai SDK).

Two response modes are supported:

- ``schema``: the request carries a JSON response schema, so the model's
  text is already a bare JSON object.
- ``prompt``: only the prompt asks for JSON; the reply may come wrapped in a
  Markdown code fence and is cleaned with ``clean_model_response`` first.
"""
import json
import logging
import re
from typing import Any, NamedTuple, Optional

from google import genai
from google.genai import types
from pydantic import ValidationError as PydanticValidationError

from errors import ResponseParseError, ServiceError, UpstreamCallError, UpstreamEmptyResponseError
from schemas import UNCLEAR_FOOD, FoodAnalysisResult
from settings import ResponseMode

logger = logging.getLogger(__name__)

FOOD_PROMPT = (
    "Analisis gambar makanan ini. Berikan nama makanan, perkiraan jumlah kalori dalam format angka, "
    "dan daftar bahan-bahan utamanya. Jawab dalam format JSON saja tanpa teks tambahan, dengan kunci "
    '"nama_makanan" (teks), "jumlah_kalori" (angka) dan "bahan_utama" (daftar teks). '
    f'Jika gambar tidak jelas atau bukan makanan, isi "nama_makanan" dengan "{UNCLEAR_FOOD}", '
    '"jumlah_kalori" dengan 0, dan isi "bahan_utama" dengan deskripsi singkat tentang isi gambar.'
)

FOOD_RESPONSE_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "nama_makanan": types.Schema(type=types.Type.STRING),
        "jumlah_kalori": types.Schema(type=types.Type.NUMBER),
        "bahan_utama": types.Schema(
            type=types.Type.ARRAY,
            items=types.Schema(type=types.Type.STRING),
        ),
    },
    required=["nama_makanan", "jumlah_kalori", "bahan_utama"],
)

_JSON_FENCE = re.compile(r"```json\s*(.*?)\s*```", re.DOTALL)


class UploadedImage(NamedTuple):
    data: bytes
    mime_type: str


class ModelReply(NamedTuple):
    text: Optional[str]
    raw: Any


def clean_model_response(raw_text: str) -> str:
    """Return the JSON payload inside a ```json fence, or the trimmed text if there is none."""
    match = _JSON_FENCE.search(raw_text)
    if match and match.group(1):
        return match.group(1).strip()
    return raw_text.strip()


def to_inline_part(image: UploadedImage) -> types.Part:
    # The SDK sends inline_data base64-encoded alongside its MIME type
    return types.Part.from_bytes(data=image.data, mime_type=image.mime_type)


def _dump_raw(response: Any) -> Any:
    if response is None or isinstance(response, (dict, list, str)):
        return response
    dump = getattr(response, "model_dump", None)
    if callable(dump):
        try:
            return dump(mode="json", exclude_none=True)
        except Exception:
            logger.debug("Could not dump model response", exc_info=True)
    return repr(response)


class GeminiVisionClient:
    """Single call boundary to the Gemini multimodal model."""

    def __init__(self, api_key: str, model: str, response_mode: ResponseMode = ResponseMode.SCHEMA_CONSTRAINED,
                 client: Optional[genai.Client] = None):
        self.model = model
        self.response_mode = ResponseMode(response_mode)
        self._client = client if client is not None else genai.Client(api_key=api_key)

    @classmethod
    def from_settings(cls, settings) -> "GeminiVisionClient":
        return cls(
            api_key=settings.GEMINI_API_KEY,
            model=settings.GEMINI_MODEL,
            response_mode=settings.response_mode,
        )

    def _config(self) -> Optional[types.GenerateContentConfig]:
        if self.response_mode is ResponseMode.SCHEMA_CONSTRAINED:
            return types.GenerateContentConfig(
                response_mime_type="application/json",
                response_schema=FOOD_RESPONSE_SCHEMA,
            )
        return None

    async def generate(self, prompt: str, image: UploadedImage) -> ModelReply:
        try:
            response = await self._client.aio.models.generate_content(
                model=self.model,
                contents=[prompt, to_inline_part(image)],
                config=self._config(),
            )
            text = response.text
        except Exception as e:
            logger.error(f"Gemini call failed ({type(e).__name__}): {e}")
            raise UpstreamCallError(details=str(e)) from e
        return ModelReply(text=text, raw=response)


async def analyze_food(client: GeminiVisionClient, image: UploadedImage) -> FoodAnalysisResult:
    """Send the image to the model and turn its answer into a FoodAnalysisResult."""
    logger.info(f"Analyzing image ({image.mime_type}, {len(image.data)} bytes) in {client.response_mode.value} mode")

    try:
        reply = await client.generate(FOOD_PROMPT, image)
    except ServiceError:
        raise
    except Exception as e:
        logger.exception("Unexpected failure calling the vision model")
        raise UpstreamCallError(details=str(e)) from e

    if not reply.text or not reply.text.strip():
        logger.error("Vision model returned an empty response")
        raise UpstreamEmptyResponseError(
            details="The model returned no text.",
            raw_response=_dump_raw(reply.raw),
        )

    if client.response_mode is ResponseMode.PROMPT_ONLY:
        cleaned = clean_model_response(reply.text)
    else:
        cleaned = reply.text.strip()

    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse model response as JSON: {reply.text!r}")
        raise ResponseParseError(details=str(e), raw_response=cleaned) from e

    try:
        result = FoodAnalysisResult.model_validate(payload)
    except PydanticValidationError as e:
        logger.error(f"Model response does not match the expected shape: {cleaned!r}")
        raise ResponseParseError(details=_summarize(e), raw_response=cleaned) from e

    if result.is_unclear:
        logger.info("Model could not identify the food in the image")
    return result


def _summarize(exc: PydanticValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "response"
        parts.append(f"{loc}: {err.get('msg')}")
    return "; ".join(parts)

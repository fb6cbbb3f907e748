"""
Unit tests for Google AI Service module
Tests Gemini request building, response parsing and error categorization
"""
import base64
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from PIL import Image

from homecanvas.core.exceptions import ExternalGenerationError, MissingImagePart
from homecanvas.services.google_ai_service import GoogleAIStudioService, _categorize_error
from tests.conftest import image_bytes

PNG_BYTES = image_bytes((8, 8), color="green")


def image_part(data=PNG_BYTES, mime_type="image/png"):
    return SimpleNamespace(text=None, inline_data=SimpleNamespace(data=data, mime_type=mime_type))


def text_part(text):
    return SimpleNamespace(text=text, inline_data=None)


@pytest.fixture
def service():
    """Service with a mocked GenAI client instead of a real API key"""
    service = GoogleAIStudioService(api_key="", model="gemini-test-image")
    service.genai_client = MagicMock()
    service.genai_configured = True
    return service


@pytest.fixture
def squares():
    return Image.new("RGB", (64, 64), color="blue"), Image.new("RGB", (64, 64), color="gray")


class TestGoogleAIServiceInitialization:
    """Tests for Google AI service initialization"""

    @pytest.mark.unit
    def test_without_api_key(self):
        service = GoogleAIStudioService(api_key="")

        assert not service.genai_configured
        assert service.genai_client is None

    @pytest.mark.unit
    def test_usage_stats_initialized(self):
        stats = GoogleAIStudioService(api_key="").usage_stats

        assert stats["total_requests"] == 0
        assert stats["successful_requests"] == 0
        assert stats["failed_requests"] == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unconfigured_service_refuses(self, squares):
        service = GoogleAIStudioService(api_key="")

        with pytest.raises(ExternalGenerationError) as exc_info:
            await service.generate_composite_image(*squares, "prompt")

        assert exc_info.value.category == "configuration"


class TestGenerateCompositeImage:
    """Tests for the generate_content round trip"""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_returns_first_image_part(self, service, squares):
        service.genai_client.models.generate_content.return_value = SimpleNamespace(
            parts=[text_part("Here is your room"), image_part()]
        )

        result = await service.generate_composite_image(*squares, "place it")

        assert result.data == PNG_BYTES
        assert result.mime_type == "image/png"
        assert service.usage_stats["successful_requests"] == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_request_contents(self, service, squares):
        service.genai_client.models.generate_content.return_value = SimpleNamespace(parts=[image_part()])

        await service.generate_composite_image(*squares, "place it")

        kwargs = service.genai_client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-test-image"
        contents = kwargs["contents"]
        assert len(contents) == 3
        assert contents[0].inline_data.mime_type == "image/jpeg"
        assert contents[1].inline_data.mime_type == "image/jpeg"
        assert contents[2].text == "place it"
        assert kwargs["config"].response_modalities == ["IMAGE"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_sdk_failure_categorized(self, service, squares):
        service.genai_client.models.generate_content.side_effect = Exception("429 RESOURCE_EXHAUSTED")

        with pytest.raises(ExternalGenerationError) as exc_info:
            await service.generate_composite_image(*squares, "place it")

        assert exc_info.value.category == "quota"
        assert exc_info.value.retryable
        assert service.usage_stats["failed_requests"] == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_image_part(self, service, squares):
        service.genai_client.models.generate_content.return_value = SimpleNamespace(
            parts=[text_part("I cannot do that")], candidates=None, prompt_feedback=None
        )

        with pytest.raises(MissingImagePart):
            await service.generate_composite_image(*squares, "place it")

        assert service.usage_stats["failed_requests"] == 1


class TestExtractImage:
    """Tests for response parsing"""

    @pytest.mark.unit
    def test_nested_candidate_parts(self, service):
        response = SimpleNamespace(
            parts=None,
            candidates=[SimpleNamespace(content=SimpleNamespace(parts=[image_part()]), finish_reason=None)],
        )

        assert service._extract_image(response).data == PNG_BYTES

    @pytest.mark.unit
    def test_base64_string_decoded(self, service):
        response = SimpleNamespace(parts=[image_part(data=base64.b64encode(PNG_BYTES).decode())])

        assert service._extract_image(response).data == PNG_BYTES

    @pytest.mark.unit
    def test_base64_bytes_decoded(self, service):
        response = SimpleNamespace(parts=[image_part(data=base64.b64encode(PNG_BYTES))])

        assert service._extract_image(response).data == PNG_BYTES

    @pytest.mark.unit
    def test_missing_mime_defaults_to_png(self, service):
        response = SimpleNamespace(parts=[image_part(mime_type=None)])

        assert service._extract_image(response).mime_type == "image/png"

    @pytest.mark.unit
    def test_prompt_blocked(self, service):
        response = SimpleNamespace(
            parts=None,
            candidates=None,
            prompt_feedback=SimpleNamespace(block_reason=SimpleNamespace(name="SAFETY")),
        )

        with pytest.raises(ExternalGenerationError) as exc_info:
            service._extract_image(response)

        assert exc_info.value.category == "safety"

    @pytest.mark.unit
    def test_candidate_finish_reason_safety(self, service):
        response = SimpleNamespace(
            parts=None,
            candidates=[SimpleNamespace(content=None, finish_reason=SimpleNamespace(name="IMAGE_SAFETY"))],
            prompt_feedback=None,
        )

        with pytest.raises(ExternalGenerationError) as exc_info:
            service._extract_image(response)

        assert exc_info.value.category == "safety"

    @pytest.mark.unit
    def test_empty_response(self, service):
        with pytest.raises(MissingImagePart):
            service._extract_image(SimpleNamespace(parts=[], candidates=[]))


class TestErrorCategorization:

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "error,category",
        [
            (Exception("429 RESOURCE_EXHAUSTED"), "quota"),
            (Exception("503 UNAVAILABLE: model overloaded"), "unavailable"),
            (ConnectionError("reset by peer"), "network"),
            (TimeoutError("read timed out"), "network"),
            (ValueError("bad"), "unknown"),
        ],
    )
    def test_categories(self, error, category):
        assert _categorize_error(error) == category

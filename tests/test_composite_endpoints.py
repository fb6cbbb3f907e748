"""
Tests for composite API endpoints
Uses FastAPI TestClient with the Gemini service mocked out
"""
import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from homecanvas.core.exceptions import (
    ExternalGenerationError,
    GenerationTimeout,
    HomeCanvasError,
    InvalidImageError,
    MissingImagePart,
    UnexpectedOutputShape,
    UnsupportedFormatError,
)
from homecanvas.routers.composite import http_status_for, router
from homecanvas.services.history_service import history_registry
from homecanvas.services.image_io import EncodedImage
from tests.conftest import data_url, decode_data_url, image_bytes

app = FastAPI()
app.include_router(router, prefix="/api")


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def session_id():
    return f"test-{uuid.uuid4().hex[:8]}"


def composite_request(session_id=None, side=256, **overrides):
    request = {
        "product_image": data_url((300, 200), color=(0, 0, 255)),
        "product_label": "Blue armchair",
        "scene_image": data_url((1600, 900), color=(128, 128, 128), format="JPEG"),
        "scene_label": "Living room",
        "drop": {"x_percent": 50.0, "y_percent": 70.0},
        "side": side,
        "session_id": session_id,
    }
    request.update(overrides)
    return request


def mock_gemini(side=256, **kwargs):
    """Stand-in for google_ai_service returning a side x side PNG"""
    service = MagicMock()
    if kwargs:
        service.generate_composite_image = AsyncMock(**kwargs)
    else:
        service.generate_composite_image = AsyncMock(
            return_value=EncodedImage(data=image_bytes((side, side), color=(0, 180, 0)), mime_type="image/png")
        )
    return service


class TestGenerateCompositeEndpoint:
    """Tests for POST /api/composite/generate"""

    def test_success_returns_cropped_image(self, client):
        with patch("homecanvas.routers.composite.google_ai_service", mock_gemini()):
            response = client.post("/api/composite/generate", json=composite_request())

        assert response.status_code == 200
        data = response.json()
        assert decode_data_url(data["final_image"]).size == (256, 144)
        assert decode_data_url(data["debug_image"]).size == (256, 256)
        assert "red" in data["prompt"].lower()
        assert data["history"] is None

    def test_success_pushes_history(self, client, session_id):
        with patch("homecanvas.routers.composite.google_ai_service", mock_gemini()):
            response = client.post("/api/composite/generate", json=composite_request(session_id))

        assert response.status_code == 200
        history = response.json()["history"]
        assert history["session_id"] == session_id
        assert history["cursor"] == 0
        assert history["current"]["artifact"] == response.json()["final_image"]
        assert len(history_registry.get(session_id)) == 1

    def test_network_failure_is_502_and_pushes_nothing(self, client, session_id):
        gemini = mock_gemini(side_effect=ConnectionError("network down"))

        with patch("homecanvas.routers.composite.google_ai_service", gemini):
            response = client.post("/api/composite/generate", json=composite_request(session_id))

        assert response.status_code == 502
        detail = response.json()["detail"]
        assert detail["error"] == "ExternalGenerationError"
        assert detail["category"] == "network"
        assert detail["retryable"] is True
        assert history_registry.find(session_id) is None

    def test_wrong_output_size_is_502(self, client, session_id):
        with patch("homecanvas.routers.composite.google_ai_service", mock_gemini(side=200)):
            response = client.post("/api/composite/generate", json=composite_request(session_id))

        assert response.status_code == 502
        assert response.json()["detail"]["error"] == "UnexpectedOutputShape"
        assert history_registry.find(session_id) is None

    def test_missing_image_part_is_502(self, client):
        gemini = mock_gemini(side_effect=MissingImagePart())

        with patch("homecanvas.routers.composite.google_ai_service", gemini):
            response = client.post("/api/composite/generate", json=composite_request())

        assert response.status_code == 502
        assert response.json()["detail"]["error"] == "MissingImagePart"

    def test_invalid_scene_is_400(self, client):
        gemini = mock_gemini()

        with patch("homecanvas.routers.composite.google_ai_service", gemini):
            response = client.post(
                "/api/composite/generate", json=composite_request(scene_image="data:image/png;base64,AAAA")
            )

        assert response.status_code == 400
        gemini.generate_composite_image.assert_not_called()

    def test_unsupported_format_is_415(self, client):
        with patch("homecanvas.routers.composite.google_ai_service", mock_gemini()):
            response = client.post(
                "/api/composite/generate",
                json=composite_request(product_image=data_url((10, 10), format="GIF")),
            )

        assert response.status_code == 415

    def test_drop_out_of_range_rejected(self, client):
        response = client.post(
            "/api/composite/generate", json=composite_request(drop={"x_percent": 120.0, "y_percent": 50.0})
        )

        assert response.status_code == 422


class TestHttpStatusMapping:

    @pytest.mark.parametrize(
        "error,status",
        [
            (InvalidImageError("bad"), 400),
            (UnsupportedFormatError("image/gif"), 415),
            (ExternalGenerationError("down", category="unavailable"), 502),
            (MissingImagePart(), 502),
            (UnexpectedOutputShape(1024, (900, 900)), 502),
            (GenerationTimeout(120), 504),
            (HomeCanvasError("other"), 500),
        ],
    )
    def test_status_codes(self, error, status):
        assert http_status_for(error) == status


class TestDropPointEndpoint:
    """Tests for POST /api/composite/drop-point"""

    def test_contain_click(self, client):
        response = client.post(
            "/api/composite/drop-point",
            json={
                "display_x": 200,
                "display_y": 200,
                "container_width": 400,
                "container_height": 400,
                "image_width": 1600,
                "image_height": 900,
                "scale_mode": "contain",
            },
        )

        assert response.status_code == 200
        assert response.json() == {"x_percent": pytest.approx(50.0), "y_percent": pytest.approx(50.0)}

    def test_click_on_letterbox_bar(self, client):
        response = client.post(
            "/api/composite/drop-point",
            json={
                "display_x": 200,
                "display_y": 20,
                "container_width": 400,
                "container_height": 400,
                "image_width": 1600,
                "image_height": 900,
            },
        )

        assert response.status_code == 422

    def test_cover_click(self, client):
        response = client.post(
            "/api/composite/drop-point",
            json={
                "display_x": 0,
                "display_y": 0,
                "container_width": 400,
                "container_height": 400,
                "image_width": 1600,
                "image_height": 900,
                "scale_mode": "cover",
            },
        )

        assert response.status_code == 200
        assert response.json()["x_percent"] == pytest.approx(21.875)

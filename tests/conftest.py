"""Test configuration and fixtures for cl_image_derivatives.

This module provides:
- Synthetic source images drawn with PIL under a temporary site root
- Settings and service fixtures (deferred and immediate generation)
- An API client with the derivative router mounted
"""

from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from PIL import Image, ImageDraw

from cl_image_derivatives import DerivativeSettings, ImageDerivativeService, create_router


def draw_synthetic(path: Path, size: tuple[int, int], mode: str = "RGB") -> Path:
    """Grid with a circle in the middle, so crops and resizes are distinguishable."""
    width, height = size
    background = (73, 109, 137, 255) if mode == "RGBA" else (73, 109, 137)
    img = Image.new(mode, size, color=background)
    draw = ImageDraw.Draw(img)

    for i in range(0, width, 50):
        draw.line([(i, 0), (i, height)], fill=(255, 255, 255), width=2)
    for i in range(0, height, 50):
        draw.line([(0, i), (width, i)], fill=(255, 255, 255), width=2)

    cx, cy = width // 2, height // 2
    r = min(width, height) // 6
    draw.ellipse([cx - r, cy - r, cx + r, cy + r], fill=(200, 100, 100))

    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() in (".jpg", ".jpeg"):
        img.save(path, "JPEG", quality=85)
    else:
        img.save(path)
    return path


# ============================================================================
# Source Fixtures
# ============================================================================


@pytest.fixture
def site_root(tmp_path: Path) -> Path:
    root = tmp_path / "site"
    root.mkdir()
    return root


@pytest.fixture
def synthetic_image(site_root: Path) -> Path:
    """800x600 JPEG at gallery/photo.jpg."""
    return draw_synthetic(site_root / "gallery" / "photo.jpg", (800, 600))


@pytest.fixture
def wide_image(site_root: Path) -> Path:
    """1600x900 JPEG at gallery/wide.jpg."""
    return draw_synthetic(site_root / "gallery" / "wide.jpg", (1600, 900))


@pytest.fixture
def transparent_image(site_root: Path) -> Path:
    """400x300 RGBA PNG with a transparent border."""
    path = draw_synthetic(site_root / "gallery" / "logo.png", (400, 300), mode="RGBA")
    with Image.open(path) as img:
        rgba = img.convert("RGBA")
    ImageDraw.Draw(rgba).rectangle([0, 0, 399, 20], fill=(0, 0, 0, 0))
    rgba.save(path)
    return path


@pytest.fixture
def watermark(site_root: Path) -> Path:
    path = site_root / "marks" / "mark.png"
    path.parent.mkdir(parents=True)
    Image.new("RGBA", (40, 20), (255, 0, 0, 255)).save(path)
    return path


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def settings(site_root: Path) -> DerivativeSettings:
    """Deferred generation, original extension, no placeholders."""
    return DerivativeSettings(
        root=site_root,
        base_url="/files",
        output_format="original",
        lqip=False,
    )


@pytest.fixture
def service(settings: DerivativeSettings) -> ImageDerivativeService:
    return ImageDerivativeService(settings)


@pytest.fixture
def immediate_service(settings: DerivativeSettings) -> ImageDerivativeService:
    """Same as ``service`` but generates derivatives synchronously."""
    return ImageDerivativeService(settings.model_copy(update={"delayed": False}))


@pytest.fixture
def api_client(service: ImageDerivativeService) -> TestClient:
    """Provide FastAPI TestClient with the derivative router under /files."""
    from fastapi import FastAPI

    app = FastAPI()
    app.include_router(create_router(service), prefix="/files")
    return TestClient(app)

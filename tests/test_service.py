"""Service-level behaviour: immediate generation, crop, svg passthrough, cleanup, startup."""

from pathlib import Path

import pytest
from PIL import Image
from pydantic import ValidationError

from cl_image_derivatives import (
    ConfigError,
    DerivativeRequest,
    DerivativeSettings,
    DriverUnavailable,
    EncodeError,
    ImageDerivativeService,
    SourceNotFound,
)

# ============================================================================
# STARTUP
# ============================================================================


def test_malformed_config_fails_at_startup(site_root: Path):
    with pytest.raises(ConfigError):
        _ = ImageDerivativeService(DerivativeSettings(root=site_root, factors="big"))


def test_unknown_driver_fails_at_startup(site_root: Path):
    settings = DerivativeSettings(root=site_root)
    with pytest.raises(DriverUnavailable):
        _ = ImageDerivativeService(settings.model_copy(update={"driver": "gd"}))


def test_settings_reject_unknown_keys(site_root: Path):
    with pytest.raises(ValueError):
        _ = DerivativeSettings(root=site_root, colour="red")  # pyright: ignore[reportCallIssue]


def test_base_url_normalized(site_root: Path):
    assert DerivativeSettings(root=site_root, base_url="/files").base_url == "/files/"
    assert DerivativeSettings(root=site_root, base_url="").base_url == "/"


# ============================================================================
# IMMEDIATE GENERATION
# ============================================================================


def test_immediate_size_writes_file(immediate_service: ImageDerivativeService, synthetic_image: Path):
    variation = immediate_service.size(synthetic_image, 300, 300, "north")

    assert variation.pending is False
    assert variation.path.name == "photo.300x300-north.jpg"
    with Image.open(variation.path) as img:
        assert img.size == (300, 300)


def test_relative_source_path(immediate_service: ImageDerivativeService, synthetic_image: Path):
    variation = immediate_service.size("gallery/photo.jpg", 100)

    assert variation.path.parent == synthetic_image.parent.resolve()
    assert variation.path.is_file()


def test_relative_source_cannot_escape_root(immediate_service: ImageDerivativeService):
    with pytest.raises(ValueError):
        _ = immediate_service.size("../outside.jpg", 100)


def test_missing_source(immediate_service: ImageDerivativeService):
    with pytest.raises(SourceNotFound):
        _ = immediate_service.size("gallery/missing.jpg", 100)


def test_immediate_encode_failure_propagates(
    immediate_service: ImageDerivativeService, site_root: Path
):
    image = site_root / "gallery" / "fake.png"
    image.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (50, 50)).save(image)
    source = immediate_service.source(image)
    image.write_bytes(b"truncated")

    with pytest.raises(EncodeError):
        _ = immediate_service.size(source, 20, 20)


def test_webp_only_output(site_root: Path, synthetic_image: Path):
    service = ImageDerivativeService(
        DerivativeSettings(root=site_root, delayed=False, lqip=False)
    )
    if not service.driver.supports("webp"):
        pytest.skip("Pillow built without WebP")

    variation = service.size(synthetic_image, 200)

    assert variation.ext == "webp"
    with Image.open(variation.path) as img:
        assert img.format == "WEBP"


def test_resolve_request_model(immediate_service: ImageDerivativeService, wide_image: Path):
    variation = immediate_service.resolve(
        DerivativeRequest(source=wide_image, height=600, options={"quality": 70})
    )

    assert (variation.width, variation.height) == (1067, 600)
    assert variation.path.name == "wide.1067x600-q70.jpg"


def test_crop_anchors_coordinates(immediate_service: ImageDerivativeService, synthetic_image: Path):
    variation = immediate_service.crop(synthetic_image, 100, 50, 200, 100)

    assert variation.path.name == "photo.200x100-c100x50.jpg"
    with Image.open(variation.path) as img:
        assert img.size == (200, 100)


def test_svg_is_passed_through(immediate_service: ImageDerivativeService, site_root: Path):
    svg = site_root / "gallery" / "icon.svg"
    svg.parent.mkdir(parents=True, exist_ok=True)
    svg.write_text('<svg xmlns="http://www.w3.org/2000/svg" width="10" height="10"/>')

    variation = immediate_service.size(svg, 300, 200)

    assert variation.path == svg
    assert variation.url == "/files/gallery/icon.svg"
    assert list(svg.parent.iterdir()) == [svg]


# ============================================================================
# CLEANUP
# ============================================================================


def test_delete_variations(service: ImageDerivativeService, synthetic_image: Path, site_root: Path):
    """Test derivatives and descriptors go, unrelated files stay."""
    gallery = synthetic_image.parent
    _ = service.size(synthetic_image, 100)
    _ = service.size(synthetic_image, 200, 200, {"format": "png"})
    (gallery / "photo.100x75.jpg").write_bytes(b"x")
    (gallery / "photo.lqip.webp").write_bytes(b"x")
    unrelated = [gallery / "photograph.jpg", gallery / "other.100x75.jpg", site_root / "photo.100x75.jpg"]
    for path in unrelated:
        path.write_bytes(b"keep")

    removed = service.delete_variations(synthetic_image)

    assert len(removed) == 4
    assert synthetic_image.exists()
    assert sorted(p.name for p in gallery.iterdir()) == sorted(
        ["photo.jpg", "photograph.jpg", "other.100x75.jpg"]
    )
    assert all(path.exists() for path in unrelated)


def test_delete_variations_handles_glob_characters(service: ImageDerivativeService, site_root: Path):
    gallery = site_root / "gallery"
    gallery.mkdir(exist_ok=True)
    source = gallery / "shot[1].jpg"
    Image.new("RGB", (10, 10)).save(source)
    (gallery / "shot[1].5x5.jpg").write_bytes(b"x")
    (gallery / "shot1.5x5.jpg").write_bytes(b"x")

    removed = service.delete_variations(source)

    assert [p.name for p in removed] == ["shot[1].5x5.jpg"]
    assert (gallery / "shot1.5x5.jpg").exists()


def test_tiff_source_with_original_output(immediate_service: ImageDerivativeService, site_root: Path):
    scan = site_root / "scans" / "scan.tiff"
    scan.parent.mkdir()
    Image.new("RGB", (400, 300), (30, 90, 160)).save(scan, "TIFF")

    variation = immediate_service.size(scan, 200, 150)

    assert variation.path.name == "scan.200x150.tiff"
    assert variation.path.is_file()


def test_format_cannot_escape_source_directory(service: ImageDerivativeService, synthetic_image: Path, site_root: Path):
    with pytest.raises(ValidationError):
        _ = service.size(synthetic_image, 200, 150, {"format": "./../../../escaped"})

    assert not list(site_root.parent.rglob("*.queue"))

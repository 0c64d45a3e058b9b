"""Tests for deterministic derivative naming."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from cl_image_derivatives import DerivativeSettings, RequestDescriptor, SourceImage
from cl_image_derivatives.common.cache_key import CacheKeyEncoder, format_number, sanitize_token
from cl_image_derivatives.common.schemas import DerivativeOptions


@pytest.fixture
def encoder(settings: DerivativeSettings) -> CacheKeyEncoder:
    return CacheKeyEncoder(settings)


@pytest.fixture
def source(synthetic_image: Path) -> SourceImage:
    return SourceImage.open(synthetic_image)


def descriptor(width: int = 640, height: int = 480, **options) -> RequestDescriptor:
    return RequestDescriptor(
        width=width, height=height, options=DerivativeOptions.model_validate(options)
    )


# ============================================================================
# HELPERS
# ============================================================================


def test_format_number():
    assert format_number(10.0) == "10"
    assert format_number(1.5) == "1.5"
    assert format_number(-20) == "-20"


def test_sanitize_token():
    assert sanitize_token("my tag!/..") == "mytag"


# ============================================================================
# PATHS
# ============================================================================


def test_plain_path(encoder, source):
    path = encoder.variation_path(source, descriptor())

    assert path == source.path.parent / "photo.640x480.jpg"


def test_suffix_tokens_in_fixed_order(encoder):
    suffix = encoder.suffix(
        descriptor(
            suffix="hero",
            rotate=90,
            flip="vertical",
            gamma=1.5,
            brightness=10,
            contrast=-5,
            colorize="10,0,-10",
            greyscale=True,
            blur=2,
            sharpen=30,
            invert=True,
            pixelate=4,
        )
    )

    assert suffix == (
        ".640x480-hero-rot90-flipv-gam1.5-bri10-con-5-col10-0--10-gre-blu2-sha30-inv-pix4"
    )


def test_token_order_independent_of_option_order(encoder):
    a = descriptor(blur=2, rotate=90, greyscale=True)
    b = descriptor(greyscale=True, rotate=90, blur=2)

    assert encoder.suffix(a) == encoder.suffix(b)


def test_equal_descriptors_produce_equal_paths(encoder, source):
    first = encoder.variation_path(source, descriptor(cropping="north", quality=60))
    second = encoder.variation_path(source, descriptor(cropping="north", quality=60))

    assert first == second


@pytest.mark.parametrize(
    "options",
    [
        {"cropping": "north"},
        {"cropping": "south"},
        {"cropping": False},
        {"cropping": ["10%", "20%"]},
        {"cropping": ["10", "20"]},
        {"crop_x": 10, "crop_y": 20},
        {"focus": [20, 80]},
        {"rotate": 90},
        {"flop": True},
        {"quality": 50},
        {"sharpening": "strong"},
        {"upscaling": True},
        {"hidpi": True},
        {"greyscale": True},
    ],
)
def test_pixel_changing_options_change_path(encoder, source, options):
    baseline = encoder.variation_path(source, descriptor())
    changed = encoder.variation_path(source, descriptor(**options))

    assert changed != baseline


def test_distinct_crop_arrays_do_not_collide(encoder):
    percent = encoder.suffix(descriptor(cropping=["10%", "20%"]))
    pixels = encoder.suffix(descriptor(cropping=[10, 20]))

    assert percent == ".640x480-c10px20p"
    assert pixels == ".640x480-c10x20"


def test_center_cropping_adds_no_token(encoder):
    assert encoder.suffix(descriptor(cropping="center")) == ".640x480"
    assert encoder.suffix(descriptor(cropping=True)) == ".640x480"


def test_focus_token(encoder):
    assert encoder.suffix(descriptor(focus={"top": 20, "left": 75.5})) == ".640x480-f20x75.5"


def test_flop_ignored_when_flip_set(encoder):
    suffix = encoder.suffix(descriptor(flip="horizontal", flop=True))

    assert "flop" not in suffix
    assert "fliph" in suffix


def test_insert_token(encoder, watermark: Path):
    options = {"insert": {"element": str(watermark), "position": "bottom-right", "offset_x": 5}}
    suffix = encoder.suffix(descriptor(**options))

    assert "_br_5x0_100" in suffix
    assert suffix.split("-")[1].startswith("ins")


def test_markup_and_scheduling_options_do_not_change_path(encoder, source):
    baseline = encoder.variation_path(source, descriptor())
    other = encoder.variation_path(
        source,
        descriptor(delayed=True, alt="Photo", sizes="100vw", is_first=True, **{"data-x": 1}),
    )

    assert other == baseline


# ============================================================================
# EXTENSION
# ============================================================================


def test_explicit_format_wins(encoder, source):
    options = DerivativeOptions(format="png", avif_only=True, webp_only=True)
    assert encoder.extension(source, options) == "png"


def test_avif_only_beats_webp_only(encoder, source):
    options = DerivativeOptions(avif_only=True, webp_only=True)
    assert encoder.extension(source, options) == "avif"


def test_webp_only(encoder, source):
    assert encoder.extension(source, DerivativeOptions(webp_only=True)) == "webp"


def test_native_extension_and_jpeg_alias(encoder, source):
    assert encoder.extension(source, DerivativeOptions()) == "jpg"
    assert encoder.extension(source, DerivativeOptions(format="JPEG")) == "jpg"


def test_format_outside_known_extensions_rejected(encoder, source):
    with pytest.raises(ValidationError):
        _ = DerivativeOptions(format="./../../../escaped")


def test_flip_token_is_sanitized(encoder, source):
    path = encoder.variation_path(source, descriptor(flip="/vertical"))

    assert path.parent == source.path.parent
    assert encoder.suffix(descriptor(flip="/vertical")) == ".640x480-flip"


# ============================================================================
# ROTATION
# ============================================================================


def test_fractional_rotation_shares_whole_degree_name(encoder, source):
    whole = encoder.variation_path(source, descriptor(rotate=10))
    fractional = encoder.variation_path(source, descriptor(rotate=10.9))

    assert whole == fractional
    assert whole.name == "photo.640x480-rot10.jpg"

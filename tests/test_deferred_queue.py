"""Deferred generation: descriptor write, miss fulfilment, stale and failure paths."""

import json
import threading
from pathlib import Path

from PIL import Image

from cl_image_derivatives import ImageDerivativeService, MissStatus, QueueDescriptor
from cl_image_derivatives.common.storage import QUEUE_SUFFIX


def queue_files(root: Path) -> list[Path]:
    return sorted(p.resolve() for p in root.rglob(f"*{QUEUE_SUFFIX}"))


# ============================================================================
# END-TO-END
# ============================================================================


def test_deferred_flow_end_to_end(service: ImageDerivativeService, synthetic_image: Path):
    """Test enqueue -> fulfill -> not pending."""
    variation = service.size(synthetic_image, 320, 240)

    assert variation.pending is True
    assert not variation.path.exists()
    assert variation.url == "/files/gallery/photo.320x240.jpg"
    assert queue_files(service.storage.root) == [
        variation.path.with_name(variation.path.name + QUEUE_SUFFIX).resolve()
    ]

    result = service.fulfill_on_miss("gallery/photo.320x240.jpg")

    assert result.status == MissStatus.fulfilled
    assert result.media_type == "image/jpeg"
    assert result.content is not None
    assert result.content_length == len(result.content)
    assert variation.path.read_bytes() == result.content
    assert queue_files(service.storage.root) == []

    again = service.fulfill_on_miss("gallery/photo.320x240.jpg")
    assert again.status == MissStatus.not_pending
    assert variation.path.exists()


def test_existing_derivative_is_not_requeued(service: ImageDerivativeService, synthetic_image: Path):
    first = service.size(synthetic_image, 320, 240)
    _ = service.fulfill_on_miss("gallery/photo.320x240.jpg")

    second = service.size(synthetic_image, 320, 240)

    assert second.pending is False
    assert second.path == first.path
    assert queue_files(service.storage.root) == []


def test_descriptor_content(service: ImageDerivativeService, synthetic_image: Path):
    variation = service.size(synthetic_image, 320, 240, {"blur": 2, "cropping": "north"})
    queue_path = variation.path.with_name(variation.path.name + QUEUE_SUFFIX)

    raw = json.loads(queue_path.read_text())
    record = QueueDescriptor.model_validate(raw)

    assert record.source == "gallery/photo.jpg"
    assert (record.width, record.height) == (320, 240)
    assert record.options["blur"] == 2
    assert record.options["cropping"] == "north"


def test_fulfilled_image_matches_options(service: ImageDerivativeService, synthetic_image: Path):
    variation = service.size(synthetic_image, 200, 200, {"format": "png"})
    result = service.fulfill_on_miss(service.storage.relative(variation.path))

    assert result.status == MissStatus.fulfilled
    assert result.media_type == "image/png"
    with Image.open(variation.path) as img:
        assert img.size == (200, 200)


# ============================================================================
# FAILURE PATHS
# ============================================================================


def test_stale_descriptor_is_removed(service: ImageDerivativeService, synthetic_image: Path):
    variation = service.size(synthetic_image, 320, 240)
    synthetic_image.unlink()

    result = service.fulfill_on_miss(service.storage.relative(variation.path))

    assert result.status == MissStatus.stale
    assert queue_files(service.storage.root) == []
    assert not variation.path.exists()


def test_unreadable_descriptor_is_not_pending(service: ImageDerivativeService, site_root: Path):
    destination = site_root / "gallery" / "photo.10x10.jpg"
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.with_name(destination.name + QUEUE_SUFFIX).write_text("{not json")

    assert service.fulfill_on_miss("gallery/photo.10x10.jpg").status == MissStatus.not_pending


def test_generation_failure_keeps_descriptor(service: ImageDerivativeService, site_root: Path):
    broken = site_root / "gallery" / "broken.jpg"
    broken.parent.mkdir(parents=True, exist_ok=True)
    broken.write_bytes(b"not really a jpeg")
    destination = site_root / "gallery" / "broken.100x100.jpg"
    queue_path = destination.with_name(destination.name + QUEUE_SUFFIX)
    queue_path.write_text(
        QueueDescriptor(source="gallery/broken.jpg", width=100, height=100).model_dump_json()
    )

    result = service.fulfill_on_miss("gallery/broken.100x100.jpg")

    assert result.status == MissStatus.failed
    assert queue_path.exists()
    assert not destination.exists()


def test_concurrent_misses_generate_once(service: ImageDerivativeService, synthetic_image: Path):
    variation = service.size(synthetic_image, 160, 120)
    relative = service.storage.relative(variation.path)
    statuses: list[MissStatus] = []

    def hit():
        statuses.append(service.fulfill_on_miss(relative).status)

    threads = [threading.Thread(target=hit) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert statuses.count(MissStatus.fulfilled) == 1
    assert statuses.count(MissStatus.not_pending) == 3
    assert variation.path.is_file()
    assert queue_files(service.storage.root) == []


def test_single_flight_locks_released_after_misses(service: ImageDerivativeService, synthetic_image: Path):
    for i in range(50):
        assert service.fulfill_on_miss(f"gallery/photo.{i}x{i}.jpg").status == MissStatus.not_pending

    variation = service.size(synthetic_image, 160, 120)
    assert service.fulfill_on_miss(service.storage.relative(variation.path)).status == MissStatus.fulfilled

    assert service.queue.in_flight == 0

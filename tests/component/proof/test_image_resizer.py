"""
Component Tests for SizeConstrainedResizer

Runs against real image files written to a temporary directory.
"""

import pytest

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from PIL import Image

from core.config import ResizeConfig
from microservices.proof_service.image_resizer import SizeConstrainedResizer


@pytest.fixture
def resizer():
    return SizeConstrainedResizer(ResizeConfig(min_dimension=50))


@pytest.fixture
def big_jpeg(tmp_path, noise_image):
    return noise_image(str(tmp_path / "scan.jpg"), size=(1200, 900), quality=95)


class TestPassThrough:
    """Inputs returned without re-encoding"""

    def test_under_ceiling_returns_same_path(self, resizer, big_jpeg, tmp_path):
        """Image under the ceiling is returned as is"""
        before = sorted(os.listdir(tmp_path))

        report = resizer.resize_with_report(big_jpeg, ceiling_bytes=os.path.getsize(big_jpeg))

        assert report.path == big_jpeg
        assert not report.resized
        assert report.attempt_paths == []
        assert sorted(os.listdir(tmp_path)) == before

    def test_resize_returns_path(self, resizer, big_jpeg):
        """resize() returns only the path"""
        assert resizer.resize(big_jpeg, ceiling_bytes=10 * 1024 * 1024) == big_jpeg

    @pytest.mark.parametrize("image_format,suffix", [("BMP", "bmp"), ("GIF", "gif")])
    def test_unsupported_format_returned_unchanged(self, resizer, noise_image, tmp_path, image_format, suffix):
        """Formats other than JPEG and PNG pass through"""
        mode = "P" if image_format == "GIF" else "RGB"
        path = noise_image(str(tmp_path / f"scan.{suffix}"), size=(300, 300), image_format=image_format, mode=mode)

        report = resizer.resize_with_report(path, ceiling_bytes=1000)

        assert report.path == path
        assert report.attempt_paths == []

    def test_garbage_file_returned_unchanged(self, resizer, tmp_path):
        """Unreadable bytes pass through"""
        path = tmp_path / "scan.jpg"
        path.write_bytes(os.urandom(50_000))

        assert resizer.resize(str(path), ceiling_bytes=1000) == str(path)

    def test_missing_file_returned_unchanged(self, resizer, tmp_path):
        """Missing file passes through"""
        missing = str(tmp_path / "nope.jpg")

        assert resizer.resize(missing, ceiling_bytes=1000) == missing


class TestShrinking:
    """Progressive downscaling of oversize images"""

    def test_fits_under_ceiling(self, resizer, big_jpeg):
        """Result is at or under the ceiling"""
        ceiling = os.path.getsize(big_jpeg) // 3

        report = resizer.resize_with_report(big_jpeg, ceiling_bytes=ceiling)

        assert report.resized
        assert report.path.endswith(".jpg")
        assert "-resized-" in report.path
        assert os.path.getsize(report.path) <= ceiling
        assert report.final_size == os.path.getsize(report.path)
        assert os.path.exists(big_jpeg)

    def test_aspect_ratio_kept(self, resizer, big_jpeg):
        """Width to height ratio survives the resize"""
        path = resizer.resize(big_jpeg, ceiling_bytes=os.path.getsize(big_jpeg) // 3)

        with Image.open(path) as image:
            width, height = image.size
            assert image.format == "JPEG"
        assert width < 1200
        assert abs(width / height - 4 / 3) < 0.02

    def test_budget_exhausted_returns_last_attempt(self, resizer, big_jpeg):
        """Unreachable ceiling returns the tenth attempt"""
        report = resizer.resize_with_report(big_jpeg, ceiling_bytes=1)

        assert report.attempts == 10
        assert report.path == report.attempt_paths[-1]
        assert report.path.endswith("scan-resized-10.jpg")
        assert report.final_size > 1
        assert len(report.intermediate_paths) == 9

    def test_shorter_side_never_below_floor(self, noise_image, tmp_path):
        """Shorter side stops at min_dimension"""
        resizer = SizeConstrainedResizer(ResizeConfig(min_dimension=400))
        path = noise_image(str(tmp_path / "scan.jpg"), size=(1200, 900), quality=95)

        report = resizer.resize_with_report(path, ceiling_bytes=1)

        assert min(report.dimensions) >= 400

    def test_rgba_png_converted(self, resizer, noise_image, tmp_path):
        """Transparent PNG is written as RGB JPEG"""
        path = noise_image(str(tmp_path / "scan.png"), size=(600, 600), image_format="PNG", mode="RGBA")

        report = resizer.resize_with_report(path, ceiling_bytes=os.path.getsize(path) // 4)

        assert report.resized
        with Image.open(report.path) as image:
            assert image.mode == "RGB"

    def test_output_dir(self, resizer, big_jpeg, tmp_path):
        """Attempts are written to the given directory"""
        out = tmp_path / "out"
        out.mkdir()

        report = resizer.resize_with_report(big_jpeg, ceiling_bytes=1, output_dir=str(out))

        assert all(p.startswith(str(out)) for p in report.attempt_paths)
        assert len(os.listdir(out)) == report.attempts


class TestDefaultConfig:
    """Production limits: 4 MiB ceiling and an 800px floor"""

    def test_large_scan_keeps_floor_and_aspect(self, noise_image, tmp_path):
        """A 3:2 scan scaled down from 6000x4000 with a proportional ceiling"""
        config = ResizeConfig()
        assert config.min_dimension == 800
        assert config.ceiling_bytes == 4 * 1024 * 1024

        # 0.3 of 6000x4000 per side, so 0.09 of the pixels and of the ceiling
        path = noise_image(str(tmp_path / "scan.jpg"), size=(1800, 1200), quality=95)
        ceiling = int(config.ceiling_bytes * 0.09)
        assert os.path.getsize(path) > ceiling

        report = SizeConstrainedResizer(config).resize_with_report(path, ceiling_bytes=ceiling)

        assert report.resized
        assert 1 <= report.attempts <= config.max_attempts
        width, height = report.dimensions
        assert min(width, height) >= 800
        assert abs(width / height - 1.5) < 0.01
        with Image.open(report.path) as image:
            assert image.size == (width, height)


class TestTargetDimensions:
    """Pure dimension arithmetic"""

    def test_scales_both_sides(self):
        """Both sides scale by the same factor"""
        resizer = SizeConstrainedResizer(ResizeConfig(min_dimension=100))
        assert resizer.target_dimensions(1000, 500, 0.5) == (500, 250)

    def test_clamped_to_floor(self):
        """Scale is raised to keep the floor"""
        resizer = SizeConstrainedResizer(ResizeConfig(min_dimension=800))
        assert resizer.target_dimensions(4000, 3000, 0.1) == (1067, 800)

    def test_never_enlarges(self):
        """Images below the floor are not enlarged"""
        resizer = SizeConstrainedResizer(ResizeConfig(min_dimension=800))
        assert resizer.target_dimensions(600, 400, 0.9) == (600, 400)

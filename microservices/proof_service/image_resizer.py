"""
Size-constrained image resizer

Shrinks physical-copy photos until they fit under an upload ceiling. Resizing
is best effort: anything unexpected hands the original file back to the
caller so an upload is never blocked by it.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from PIL import Image

from core.config import ResizeConfig

logger = logging.getLogger(__name__)


@dataclass
class ResizeReport:
    """What a resize call did"""
    path: str
    original_path: str
    original_size: int = 0
    final_size: int = 0
    attempt_paths: List[str] = field(default_factory=list)
    dimensions: Optional[Tuple[int, int]] = None

    @property
    def resized(self) -> bool:
        return self.path != self.original_path

    @property
    def attempts(self) -> int:
        return len(self.attempt_paths)

    @property
    def intermediate_paths(self) -> List[str]:
        """Attempt files other than the returned one"""
        return [p for p in self.attempt_paths if p != self.path]


class SizeConstrainedResizer:
    """Re-encodes an image as progressively smaller JPEGs until it fits"""

    def __init__(self, config: Optional[ResizeConfig] = None):
        self.config = config or ResizeConfig()

    def resize(
        self,
        file_path: str,
        ceiling_bytes: Optional[int] = None,
        output_dir: Optional[str] = None,
    ) -> str:
        """Return a path to an image at or under ceiling_bytes, or the best effort"""
        return self.resize_with_report(file_path, ceiling_bytes, output_dir).path

    def resize_with_report(
        self,
        file_path: str,
        ceiling_bytes: Optional[int] = None,
        output_dir: Optional[str] = None,
    ) -> ResizeReport:
        ceiling = ceiling_bytes if ceiling_bytes is not None else self.config.ceiling_bytes
        report = ResizeReport(path=file_path, original_path=file_path)

        try:
            self._resize(file_path, ceiling, output_dir, report)
        except Exception as e:
            logger.error(f"Error resizing image {file_path}: {e}", exc_info=True)
            report.path = file_path
            report.final_size = report.original_size

        return report

    def target_dimensions(self, width: int, height: int, scale: float) -> Tuple[int, int]:
        """Scale both sides, keeping the shorter side at or above the floor and never enlarging"""
        floor_scale = self.config.min_dimension / min(width, height)
        effective = min(1.0, max(scale, floor_scale))
        return max(1, round(width * effective)), max(1, round(height * effective))

    def _resize(self, file_path: str, ceiling: int, output_dir: Optional[str], report: ResizeReport) -> None:
        report.original_size = os.path.getsize(file_path)
        report.final_size = report.original_size

        if report.original_size <= ceiling:
            logger.info(f"Image already under size limit: {file_path} ({report.original_size} bytes)")
            return

        with Image.open(file_path) as image:
            width, height = image.size
            image_format = (image.format or "").upper()

            if not width or not height:
                logger.warning(f"Could not determine image dimensions: {file_path}")
                return

            if image_format not in self.config.allowed_formats:
                logger.warning(f"Unsupported image format {image_format or 'unknown'}: {file_path}")
                return

            logger.info(
                f"Image exceeds size limit, resizing: {file_path} "
                f"size={report.original_size} ceiling={ceiling} dimensions={width}x{height} format={image_format}"
            )

            source = image if image.mode == "RGB" else image.convert("RGB")
            directory = output_dir or os.path.dirname(os.path.abspath(file_path))
            stem = os.path.splitext(os.path.basename(file_path))[0]

            scale = self.config.initial_scale
            for attempt in range(1, self.config.max_attempts + 1):
                target = self.target_dimensions(width, height, scale)
                out_path = os.path.join(directory, f"{stem}-resized-{attempt}.jpg")

                source.resize(target, Image.Resampling.LANCZOS).save(
                    out_path, "JPEG", quality=self.config.jpeg_quality
                )
                report.attempt_paths.append(out_path)
                report.path = out_path
                report.dimensions = target
                report.final_size = os.path.getsize(out_path)

                logger.debug(
                    f"Resize attempt {attempt}: {target[0]}x{target[1]} scale={scale:.3f} size={report.final_size}"
                )

                if report.final_size <= ceiling:
                    break
                scale *= self.config.scale_step

        if report.final_size > ceiling:
            logger.warning(
                f"Could not resize {file_path} below {ceiling} bytes after {report.attempts} attempts, "
                f"returning last attempt ({report.final_size} bytes)"
            )
        else:
            logger.info(
                f"Image resized: {file_path} -> {report.path} "
                f"({report.original_size} -> {report.final_size} bytes)"
            )


__all__ = ["SizeConstrainedResizer", "ResizeReport"]

"""
Character region segmentation.

Finds glyph-sized blobs of ink (black pixels) in a binarized frame so the
character-level recognition path can read them one at a time.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import cv2
import numpy as np

from ..config import SegmentationConfig
from ..core.frame import Frame

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Region:
    """Axis-aligned bounding box inside a frame."""
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def overlaps(self, other: 'Region') -> bool:
        """Boxes that touch or intersect on both axes."""
        return not (
            self.right < other.x
            or other.right < self.x
            or self.bottom < other.y
            or other.bottom < self.y
        )

    def union(self, other: 'Region') -> 'Region':
        x = min(self.x, other.x)
        y = min(self.y, other.y)
        return Region(
            x=x,
            y=y,
            width=max(self.right, other.right) - x,
            height=max(self.bottom, other.bottom) - y,
        )


class RegionSegmenter:
    """
    Connected-component glyph finder.

    Example:
        segmenter = RegionSegmenter()
        for region in segmenter.find_regions(binary_frame):
            glyph = binary_frame.crop(region.x, region.y, region.width, region.height)
    """

    def __init__(self, config: Optional[SegmentationConfig] = None):
        self.config = config or SegmentationConfig()

    def is_valid_region(self, region: Region) -> bool:
        cfg = self.config
        return (
            cfg.min_width <= region.width <= cfg.max_width
            and cfg.min_height <= region.height <= cfg.max_height
        )

    def find_regions(self, binary_frame: Frame) -> List[Region]:
        """
        Return glyph-sized regions in raster order of their first pixel.

        Ink is red == 0. Components are 4-connected. Regions outside the
        configured size range are discarded, overlapping survivors are merged
        until no two overlap, and merged boxes that outgrow the size range are
        discarded as well.
        """
        ink = (binary_frame.red == 0).astype(np.uint8)
        count, _, stats, _ = cv2.connectedComponentsWithStats(ink, connectivity=4)

        regions = []
        # Label 0 is the background
        for label in range(1, count):
            region = Region(
                x=int(stats[label, cv2.CC_STAT_LEFT]),
                y=int(stats[label, cv2.CC_STAT_TOP]),
                width=int(stats[label, cv2.CC_STAT_WIDTH]),
                height=int(stats[label, cv2.CC_STAT_HEIGHT]),
            )
            if self.is_valid_region(region):
                regions.append(region)

        merged = merge_overlapping_regions(regions)
        kept = [region for region in merged if self.is_valid_region(region)]
        logger.debug(
            f"Segmentation: {count - 1} components, {len(regions)} glyph-sized, "
            f"{len(kept)} after merge"
        )
        return kept


def merge_overlapping_regions(regions: List[Region]) -> List[Region]:
    """Merge regions transitively until no two overlap."""
    merged = list(regions)
    changed = True
    while changed:
        changed = False
        result: List[Region] = []
        for region in merged:
            for i, existing in enumerate(result):
                if existing.overlaps(region):
                    result[i] = existing.union(region)
                    changed = True
                    break
            else:
                result.append(region)
        merged = result
    return merged

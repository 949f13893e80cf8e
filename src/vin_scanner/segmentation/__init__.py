"""
Character segmentation for the per-glyph recognition path.
"""

from .region_segmenter import Region, RegionSegmenter, merge_overlapping_regions

__all__ = ["Region", "RegionSegmenter", "merge_overlapping_regions"]

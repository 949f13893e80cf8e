"""
Tests for character region segmentation.
"""

import numpy as np
import pytest

from vin_scanner.config import SegmentationConfig
from vin_scanner.core.frame import Frame
from vin_scanner.segmentation import Region, RegionSegmenter, merge_overlapping_regions


@pytest.fixture
def segmenter():
    return RegionSegmenter()


def binary_with_boxes(boxes, height=120, width=300):
    """White frame with solid black (ink) rectangles given as (x, y, w, h)."""
    gray = np.full((height, width), 255, dtype=np.uint8)
    for x, y, w, h in boxes:
        gray[y:y + h, x:x + w] = 0
    return Frame.from_gray(gray)


def assert_segmentation_invariants(regions, config=SegmentationConfig()):
    for region in regions:
        assert config.min_width <= region.width <= config.max_width
        assert config.min_height <= region.height <= config.max_height
    for i, a in enumerate(regions):
        for b in regions[i + 1:]:
            assert not a.overlaps(b)


class TestRegion:
    """Bounding box geometry."""

    def test_overlap(self):
        assert Region(0, 0, 20, 30).overlaps(Region(10, 10, 20, 30))

    def test_touching_edges_overlap(self):
        assert Region(0, 0, 20, 30).overlaps(Region(20, 0, 20, 30))

    def test_disjoint(self):
        assert not Region(0, 0, 20, 30).overlaps(Region(21, 0, 20, 30))
        assert not Region(0, 0, 20, 30).overlaps(Region(0, 31, 20, 30))

    def test_union(self):
        assert Region(0, 0, 20, 30).union(Region(10, 10, 20, 30)) == Region(0, 0, 30, 40)


class TestMerge:
    """Transitive merging of overlapping boxes."""

    def test_no_overlap_untouched(self):
        regions = [Region(0, 0, 20, 30), Region(40, 0, 20, 30)]
        assert merge_overlapping_regions(regions) == regions

    def test_pair_merged(self):
        merged = merge_overlapping_regions([Region(0, 0, 20, 30), Region(10, 10, 20, 30)])
        assert merged == [Region(0, 0, 30, 40)]

    def test_transitive_chain(self):
        # a overlaps b, b overlaps c, a does not overlap c
        regions = [Region(0, 0, 20, 30), Region(60, 0, 20, 30), Region(15, 0, 50, 30)]
        assert merge_overlapping_regions(regions) == [Region(0, 0, 80, 30)]

    def test_empty(self):
        assert merge_overlapping_regions([]) == []


class TestFindRegions:
    """Connected-component glyph finding."""

    def test_glyph_sized_box(self, segmenter):
        regions = segmenter.find_regions(binary_with_boxes([(10, 20, 30, 40)]))
        assert regions == [Region(10, 20, 30, 40)]

    def test_size_filter(self, segmenter):
        frame = binary_with_boxes([
            (5, 5, 5, 5),        # speck
            (20, 5, 60, 40),     # too wide
            (100, 5, 25, 110),   # too tall
            (150, 30, 20, 30),   # smallest glyph
            (200, 10, 50, 100),  # largest glyph
        ], height=120, width=300)
        regions = sorted(segmenter.find_regions(frame), key=lambda r: r.x)
        assert regions == [Region(150, 30, 20, 30), Region(200, 10, 50, 100)]

    def test_separate_glyphs(self, segmenter):
        boxes = [(10 + i * 30, 20, 22, 40) for i in range(8)]
        regions = sorted(segmenter.find_regions(binary_with_boxes(boxes)), key=lambda r: r.x)
        assert [r.x for r in regions] == [x for x, _, _, _ in boxes]
        assert_segmentation_invariants(regions)

    def test_diagonal_pixels_not_connected(self, segmenter):
        # Two boxes that meet only at a corner are separate 4-connected components
        frame = binary_with_boxes([(10, 10, 20, 30), (30, 40, 20, 30)])
        regions = segmenter.find_regions(frame)
        # Their boxes touch diagonally, so they are merged into one region
        assert regions == [Region(10, 10, 40, 60)]

    def test_merge_that_outgrows_limits_is_dropped(self, segmenter):
        frame = binary_with_boxes([(10, 10, 30, 30), (40, 40, 30, 30)])
        # Union would be 60 wide: too wide for a glyph
        assert segmenter.find_regions(frame) == []

    def test_blank_frame(self, segmenter):
        assert segmenter.find_regions(binary_with_boxes([])) == []

    def test_random_noise_invariants(self, segmenter):
        rng = np.random.default_rng(5)
        gray = np.where(rng.random((120, 300)) < 0.55, 0, 255).astype(np.uint8)
        assert_segmentation_invariants(segmenter.find_regions(Frame.from_gray(gray)))

    def test_custom_limits(self):
        segmenter = RegionSegmenter(SegmentationConfig(min_width=2, max_width=5, min_height=2, max_height=5))
        regions = segmenter.find_regions(binary_with_boxes([(3, 3, 4, 4)], height=20, width=20))
        assert regions == [Region(3, 3, 4, 4)]

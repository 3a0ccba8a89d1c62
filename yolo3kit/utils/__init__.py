"""
yolo3kit Utils Module.

This module contains utility functions:
- Anchors: k-means++ anchor generation and anchor file handling
- Boxes: Grid tensor decoding and IoU calculation
"""

from .anchors import (
    AnchorUtils, COCO_ANCHORS, box_jaccard_distance, check_grid_anchors,
    generate_anchors, get_default_anchors, load_anchors, save_anchors
)
from .boxes import (
    broadcast_iou, calculate_iou, min_max_to_center, transform_box_to_min_max, transform_boxes
)

__all__ = [
    "AnchorUtils",
    "COCO_ANCHORS",
    "box_jaccard_distance",
    "check_grid_anchors",
    "generate_anchors",
    "get_default_anchors",
    "load_anchors",
    "save_anchors",
    "broadcast_iou",
    "calculate_iou",
    "min_max_to_center",
    "transform_box_to_min_max",
    "transform_boxes",
]

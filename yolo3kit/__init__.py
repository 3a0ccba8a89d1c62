"""
yolo3kit: YOLOv3 loss, IoU metric and anchor generation.

yolo3kit provides the detection-specific pieces needed to train a YOLOv3-style
model with TensorFlow/Keras:

Key Features:
- Per-grid YOLOv3 loss (box, objectness, no-objectness and class terms)
- IoU-based ignore mask for near-miss negative predictions
- Per-grid average IoU metric
- k-means++ anchor generation with Jaccard distance over box shapes

Example:
    >>> from yolo3kit import generate_anchors, yolo3_loss, yolo3_metrics
    >>>
    >>> # Cluster annotated box sizes into 3 anchors per grid
    >>> anchors = generate_anchors(annotations, anchors_per_grid=3)
    >>>
    >>> # Bind one loss and one metric per grid output
    >>> model.compile(optimizer="adam",
    ...               loss=yolo3_loss(anchors, num_classes=80),
    ...               metrics=yolo3_metrics(anchors, num_classes=80))
"""

__version__ = "1.0.0"

# Core imports
from . import data
from . import losses
from . import metrics
from . import utils

# Convenience imports
from .losses import yolo3_loss, yolo3_grid_loss, Yolo3GridLoss
from .metrics import yolo3_metrics, yolo3_grid_iou, Yolo3GridIoU
from .utils import generate_anchors, COCO_ANCHORS

__all__ = [
    # Core modules
    "data",
    "losses",
    "metrics",
    "utils",

    # Convenience functions
    "yolo3_loss",
    "yolo3_grid_loss",
    "Yolo3GridLoss",
    "yolo3_metrics",
    "yolo3_grid_iou",
    "Yolo3GridIoU",
    "generate_anchors",
    "COCO_ANCHORS",
]

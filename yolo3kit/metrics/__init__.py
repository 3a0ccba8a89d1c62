"""
yolo3kit Metrics Module.

This module contains evaluation metrics:
- yolo3_grid_iou: Average IoU at positive cells of one grid
- Yolo3GridIoU: Keras-compatible metric bound to one grid's anchors
- yolo3_metrics: One Yolo3GridIoU per grid
"""

from .iou_metric import yolo3_grid_iou, Yolo3GridIoU, yolo3_metrics

__all__ = [
    "yolo3_grid_iou",
    "Yolo3GridIoU",
    "yolo3_metrics",
]

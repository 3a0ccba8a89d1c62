"""
yolo3kit Losses Module.

This module contains the YOLOv3 grid loss:
- yolo3_grid_loss: Loss for one grid (box, objectness, no-objectness, class)
- yolo3_grid_loss_components: The four weighted terms separately
- Yolo3GridLoss: Keras-compatible loss bound to one grid's anchors
- yolo3_loss: One Yolo3GridLoss per grid
"""

from .yolo3_loss import yolo3_grid_loss, yolo3_grid_loss_components, Yolo3GridLoss, yolo3_loss

__all__ = [
    "yolo3_grid_loss",
    "yolo3_grid_loss_components",
    "Yolo3GridLoss",
    "yolo3_loss",
]

#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Average IoU metric for YOLOv3 grids.
"""

import numpy as np
import tensorflow as tf
from typing import Dict, List

from ..utils.anchors import check_grid_anchors
from ..utils.boxes import (
    AnchorLike, calculate_iou, check_matching_shapes, transform_box_to_min_max, transform_boxes
)


def yolo3_grid_iou(y_true: tf.Tensor, y_pred: tf.Tensor,
                   anchors: AnchorLike, num_classes: int) -> tf.Tensor:
    """
    Mean IoU between predicted and true boxes at positive cells of one grid.

    A batch element without any positive cell scores 1.0.

    Args:
        y_true: True grid tensor (batch, grid_h, grid_w, num_anchors, 5 + num_classes)
        y_pred: Raw predicted grid tensor of the same shape
        anchors: Anchors of this grid, shape (num_anchors, 2)
        num_classes: Number of object classes

    Returns:
        Mean IoU tensor of shape (batch,)
    """
    y_true = tf.cast(y_true, tf.float32)
    y_pred = tf.cast(y_pred, tf.float32)
    check_matching_shapes(y_true, y_pred)

    true_bbox, true_score, _ = transform_boxes(y_true, anchors, num_classes, transform_proba=False)
    pred_bbox, _, _ = transform_boxes(y_pred, anchors, num_classes, transform_proba=True)
    true_boxes_min_max = transform_box_to_min_max(true_bbox)
    pred_boxes_min_max = transform_box_to_min_max(pred_bbox)

    obj_mask = tf.squeeze(true_score, axis=-1)
    iou = calculate_iou(pred_boxes_min_max, true_boxes_min_max) * obj_mask

    iou_sum = tf.reduce_sum(iou, axis=[1, 2, 3])
    num_positives = tf.reduce_sum(obj_mask, axis=[1, 2, 3])
    return tf.where(num_positives > 0,
                    tf.math.divide_no_nan(iou_sum, num_positives),
                    tf.ones_like(iou_sum))


class Yolo3GridIoU:
    """Average IoU of one YOLOv3 grid, usable as a Keras metric function."""

    __name__ = 'avg_IoU'

    def __init__(self, anchors: AnchorLike, num_classes: int):
        if num_classes < 1:
            raise ValueError(f"num_classes must be >= 1, got {num_classes}")
        self.anchors = np.asarray(anchors, dtype=np.float32)
        self.num_classes = num_classes

    def __call__(self, y_true: tf.Tensor, y_pred: tf.Tensor) -> tf.Tensor:
        return yolo3_grid_iou(y_true, y_pred, self.anchors, self.num_classes)

    def __repr__(self):
        return f"Yolo3GridIoU(num_anchors={len(self.anchors)}, num_classes={self.num_classes})"


def yolo3_metrics(anchors: List[AnchorLike], num_classes: int) -> Dict[str, Yolo3GridIoU]:
    """
    Create one average IoU metric per YOLOv3 grid.

    Returns:
        {'grid1': metric, 'grid2': metric, 'grid3': metric}
    """
    anchors = check_grid_anchors(anchors)
    return {f'grid{grid_id}': Yolo3GridIoU(grid_anchors, num_classes)
            for grid_id, grid_anchors in enumerate(anchors, start=1)}

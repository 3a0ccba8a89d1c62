#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
YOLOv3 loss function implementation.
- Box loss: area-scaled squared error on decoded boxes
- Objectness / no-objectness loss: BCE with IoU ignore mask
- Classification loss: one-vs-rest BCE with per-class weights
"""

import numpy as np
import tensorflow as tf
from typing import Dict, List, Optional, Sequence

from ..utils.anchors import check_grid_anchors
from ..utils.boxes import (
    AnchorLike, broadcast_iou, check_matching_shapes, transform_box_to_min_max, transform_boxes
)


def _check_class_weights(class_weights: Optional[Sequence[float]], num_classes: int) -> np.ndarray:
    if class_weights is None:
        return np.ones(num_classes, dtype=np.float32)
    class_weights = np.asarray(class_weights, dtype=np.float32).reshape(-1)
    if len(class_weights) != num_classes:
        raise ValueError(f"class_weights length ({len(class_weights)}) must match num_classes ({num_classes})")
    return class_weights


def get_max_iou(pred_boxes_min_max: tf.Tensor, true_boxes_min_max: tf.Tensor,
                obj_mask: tf.Tensor) -> tf.Tensor:
    """
    Max IoU between each predicted box and the positive true boxes of its image.

    Args:
        pred_boxes_min_max: (batch, grid_h, grid_w, num_anchors, 4)
        true_boxes_min_max: (batch, grid_h, grid_w, num_anchors, 4)
        obj_mask: (batch, grid_h, grid_w, num_anchors)

    Returns:
        (batch, grid_h, grid_w, num_anchors); 0 for images without positive boxes
    """
    def image_max_iou(inputs):
        pred_boxes, true_boxes, mask = inputs
        positive_boxes = tf.boolean_mask(true_boxes, tf.cast(mask, tf.bool))  # (n_true, 4)
        iou = broadcast_iou(pred_boxes, positive_boxes)  # (grid_h, grid_w, num_anchors, n_true)
        iou = tf.concat([iou, tf.zeros_like(iou[..., :1])], axis=-1)
        return tf.reduce_max(iou, axis=-1)

    return tf.map_fn(image_max_iou, (pred_boxes_min_max, true_boxes_min_max, obj_mask),
                     fn_output_signature=tf.float32)


def yolo3_grid_loss_components(y_true: tf.Tensor, y_pred: tf.Tensor,
                               anchors: AnchorLike, num_classes: int,
                               nonobj_threshold: float = 0.5,
                               bbox_lambda: float = 1.0, obj_lambda: float = 1.0,
                               noobj_lambda: float = 1.0, class_lambda: float = 1.0,
                               class_weights: Optional[Sequence[float]] = None) -> Dict[str, tf.Tensor]:
    """
    Compute the four weighted loss terms for one YOLOv3 grid.

    Args:
        y_true: True grid tensor (batch, grid_h, grid_w, num_anchors, 5 + num_classes)
                with 0/1 objectness and class values
        y_pred: Raw predicted grid tensor of the same shape
        anchors: Anchors of this grid, shape (num_anchors, 2)
        num_classes: Number of object classes
        nonobj_threshold: Predictions overlapping a true box with IoU at or above
                          this value are not penalized as false positives
        bbox_lambda: Box loss weight
        obj_lambda: Objectness loss weight
        noobj_lambda: No-objectness loss weight
        class_lambda: Classification loss weight
        class_weights: Per-class weights of length num_classes (default all 1)

    Returns:
        Dict with 'bbox', 'obj', 'noobj' and 'class' tensors of shape (batch,)
    """
    class_weights = _check_class_weights(class_weights, num_classes)
    y_true = tf.cast(y_true, tf.float32)
    y_pred = tf.cast(y_pred, tf.float32)
    check_matching_shapes(y_true, y_pred)

    true_bbox, true_score, true_class = transform_boxes(y_true, anchors, num_classes, transform_proba=False)
    pred_bbox, pred_score, pred_class = transform_boxes(y_pred, anchors, num_classes, transform_proba=True)
    true_boxes_min_max = transform_box_to_min_max(true_bbox)
    pred_boxes_min_max = transform_box_to_min_max(pred_bbox)

    # Small boxes weigh more
    bbox_scale = 2.0 - true_bbox[..., 2] * true_bbox[..., 3]
    obj_mask = tf.squeeze(true_score, axis=-1)
    bbox_loss = bbox_scale * obj_mask * tf.reduce_sum(tf.square(true_bbox - pred_bbox), axis=-1)

    max_iou = get_max_iou(pred_boxes_min_max, true_boxes_min_max, obj_mask)
    ignore_mask = tf.cast(max_iou < nonobj_threshold, tf.float32)
    obj_loss_bc = tf.keras.losses.binary_crossentropy(true_score, pred_score)
    obj_loss = obj_mask * obj_loss_bc
    noobj_loss = (1.0 - obj_mask) * obj_loss_bc * ignore_mask

    class_loss = tf.zeros_like(obj_mask)
    for cls in range(num_classes):
        current_class_true = true_class[..., cls:cls + 1]
        current_class = tf.concat([current_class_true, 1.0 - current_class_true], axis=-1)
        current_class_pred_true = pred_class[..., cls:cls + 1]
        current_class_pred = tf.concat([current_class_pred_true, 1.0 - current_class_pred_true], axis=-1)
        current_class_bc = tf.keras.losses.binary_crossentropy(current_class, current_class_pred)
        class_loss += float(class_weights[cls]) * current_class_bc
    class_loss = obj_mask * class_loss

    return {
        'bbox': bbox_lambda * tf.reduce_sum(bbox_loss, axis=[1, 2, 3]),
        'obj': obj_lambda * tf.reduce_sum(obj_loss, axis=[1, 2, 3]),
        'noobj': noobj_lambda * tf.reduce_sum(noobj_loss, axis=[1, 2, 3]),
        'class': class_lambda * tf.reduce_sum(class_loss, axis=[1, 2, 3]),
    }


def yolo3_grid_loss(y_true: tf.Tensor, y_pred: tf.Tensor,
                    anchors: AnchorLike, num_classes: int,
                    nonobj_threshold: float = 0.5,
                    bbox_lambda: float = 1.0, obj_lambda: float = 1.0,
                    noobj_lambda: float = 1.0, class_lambda: float = 1.0,
                    class_weights: Optional[Sequence[float]] = None) -> tf.Tensor:
    """
    Compute the loss for one YOLOv3 grid.

    L = bbox_lambda * L_bbox + obj_lambda * L_obj + noobj_lambda * L_noobj + class_lambda * L_class

    See yolo3_grid_loss_components for the arguments.

    Returns:
        Loss tensor of shape (batch,)
    """
    components = yolo3_grid_loss_components(
        y_true, y_pred, anchors, num_classes, nonobj_threshold,
        bbox_lambda, obj_lambda, noobj_lambda, class_lambda, class_weights)
    return components['bbox'] + components['obj'] + components['noobj'] + components['class']


class Yolo3GridLoss:
    """
    Loss for one YOLOv3 grid, usable as a Keras loss.

    Holds the grid's anchors and the loss hyperparameters; nothing is
    computed until it is called with (y_true, y_pred).
    """

    __name__ = 'yolo3_loss'

    def __init__(self,
                 anchors: AnchorLike,
                 num_classes: int,
                 nonobj_threshold: float = 0.5,
                 bbox_lambda: float = 1.0,
                 obj_lambda: float = 1.0,
                 noobj_lambda: float = 1.0,
                 class_lambda: float = 1.0,
                 class_weights: Optional[Sequence[float]] = None):
        if num_classes < 1:
            raise ValueError(f"num_classes must be >= 1, got {num_classes}")
        self.anchors = np.asarray(anchors, dtype=np.float32)
        self.num_classes = num_classes
        self.nonobj_threshold = nonobj_threshold
        self.bbox_lambda = bbox_lambda
        self.obj_lambda = obj_lambda
        self.noobj_lambda = noobj_lambda
        self.class_lambda = class_lambda
        self.class_weights = _check_class_weights(class_weights, num_classes)

    def __call__(self, y_true: tf.Tensor, y_pred: tf.Tensor) -> tf.Tensor:
        return yolo3_grid_loss(y_true, y_pred, self.anchors, self.num_classes,
                               nonobj_threshold=self.nonobj_threshold,
                               bbox_lambda=self.bbox_lambda,
                               obj_lambda=self.obj_lambda,
                               noobj_lambda=self.noobj_lambda,
                               class_lambda=self.class_lambda,
                               class_weights=self.class_weights)

    def __repr__(self):
        return (f"Yolo3GridLoss(num_anchors={len(self.anchors)}, num_classes={self.num_classes}, "
                f"nonobj_threshold={self.nonobj_threshold})")


def yolo3_loss(anchors: List[AnchorLike],
               num_classes: int,
               nonobj_threshold: float = 0.5,
               bbox_lambda: float = 1.0,
               obj_lambda: float = 1.0,
               noobj_lambda: float = 1.0,
               class_lambda: float = 1.0,
               class_weights: Optional[Sequence[float]] = None) -> Dict[str, Yolo3GridLoss]:
    """
    Create one loss per YOLOv3 grid.

    Args:
        anchors: List of 3 anchor arrays, one per grid (largest first)
        num_classes: Number of object classes
        (remaining arguments as in yolo3_grid_loss_components)

    Returns:
        {'grid1': loss, 'grid2': loss, 'grid3': loss}
    """
    anchors = check_grid_anchors(anchors)
    return {
        f'grid{grid_id}': Yolo3GridLoss(grid_anchors, num_classes,
                                        nonobj_threshold=nonobj_threshold,
                                        bbox_lambda=bbox_lambda,
                                        obj_lambda=obj_lambda,
                                        noobj_lambda=noobj_lambda,
                                        class_lambda=class_lambda,
                                        class_weights=class_weights)
        for grid_id, grid_anchors in enumerate(anchors, start=1)
    }

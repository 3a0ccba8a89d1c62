#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Bounding box utilities for yolo3kit.
Decodes raw YOLOv3 grid tensors and computes box overlaps.
"""

import numpy as np
import tensorflow as tf
from typing import Sequence, Tuple, Union


AnchorLike = Union[np.ndarray, Sequence[Sequence[float]]]


def check_grid_tensor(tensor: tf.Tensor, num_anchors: int, num_classes: int, name: str = "tensor"):
    """
    Validate the static shape of a grid tensor.

    Expected layout is (batch, grid_h, grid_w, num_anchors, 5 + num_classes).
    Dimensions unknown at trace time are not checked.

    Raises:
        ValueError: If rank, anchor axis or box depth do not match
    """
    shape = tensor.shape
    if shape.rank is None:
        return
    if shape.rank != 5:
        raise ValueError(f"{name} must be rank 5 (batch, grid_h, grid_w, anchors, 5 + num_classes), "
                         f"got shape {shape}")
    if shape[3] is not None and shape[3] != num_anchors:
        raise ValueError(f"{name} has {shape[3]} anchors per cell but {num_anchors} anchors were given")
    if shape[4] is not None and shape[4] != 5 + num_classes:
        raise ValueError(f"{name} last dimension is {shape[4]}, expected 5 + num_classes = {5 + num_classes}")


def check_matching_shapes(y_true: tf.Tensor, y_pred: tf.Tensor):
    """
    Ensure true and predicted grids have the same shape.

    Unknown dimensions (e.g. the batch axis while tracing) match anything.

    Raises:
        ValueError: If the static shapes are incompatible
    """
    if not y_true.shape.is_compatible_with(y_pred.shape):
        raise ValueError(f"y_true shape {y_true.shape} does not match y_pred shape {y_pred.shape}")


def transform_boxes(preds: tf.Tensor,
                    anchors: AnchorLike,
                    num_classes: int,
                    transform_proba: bool = True) -> Tuple[tf.Tensor, tf.Tensor, tf.Tensor]:
    """
    Transform raw YOLOv3 grid output into image-relative boxes and scores.

    Box centers are offset by the cell position and normalized by the grid
    size; widths and heights are decoded in log-space against the anchors.
    exp(tw) and exp(th) are not clipped.

    Args:
        preds: Grid tensor of shape (batch, grid_h, grid_w, num_anchors, 5 + num_classes)
        anchors: Anchors of this grid, shape (num_anchors, 2) - width and height
        num_classes: Number of object classes
        transform_proba: Whether to apply a sigmoid to objectness and class scores.
                         False for ground truth tensors that already hold probabilities.

    Returns:
        Tuple of (bbox, score, class_probs):
          - bbox: (..., 4) as [x_center, y_center, w, h]
          - score: (..., 1)
          - class_probs: (..., num_classes)
    """
    anchors = np.asarray(anchors, dtype=np.float32)
    preds = tf.cast(preds, tf.float32)
    check_grid_tensor(preds, len(anchors), num_classes, name="preds")

    grid_h = tf.shape(preds)[1]
    grid_w = tf.shape(preds)[2]

    box_x, box_y, box_w, box_h, score, class_probs = tf.split(
        preds, num_or_size_splits=[1, 1, 1, 1, 1, num_classes], axis=-1)
    box_x = tf.sigmoid(box_x)
    box_y = tf.sigmoid(box_y)
    if transform_proba:
        score = tf.sigmoid(score)
        class_probs = tf.sigmoid(class_probs)

    # [grid_h, grid_w] -> [grid_h, grid_w, 1, 1] to broadcast over anchors
    grid_col, grid_row = tf.meshgrid(tf.range(grid_w), tf.range(grid_h))
    grid_col = tf.cast(grid_col[..., tf.newaxis, tf.newaxis], tf.float32)
    grid_row = tf.cast(grid_row[..., tf.newaxis, tf.newaxis], tf.float32)

    box_x = (box_x + grid_col) / tf.cast(grid_w, tf.float32)
    box_y = (box_y + grid_row) / tf.cast(grid_h, tf.float32)

    anchors_tf = tf.constant(anchors, dtype=tf.float32)  # [num_anchors, 2]
    box_w = tf.exp(box_w) * anchors_tf[:, 0:1]
    box_h = tf.exp(box_h) * anchors_tf[:, 1:2]

    bbox = tf.concat([box_x, box_y, box_w, box_h], axis=-1)
    return bbox, score, class_probs


def transform_box_to_min_max(box: tf.Tensor) -> tf.Tensor:
    """Convert [x, y, w, h] boxes to [xmin, ymin, xmax, ymax]."""
    box_xy = box[..., 0:2]
    box_half_wh = box[..., 2:4] / 2.0
    return tf.concat([box_xy - box_half_wh, box_xy + box_half_wh], axis=-1)


def calculate_iou(pred_boxes: tf.Tensor, true_boxes: tf.Tensor) -> tf.Tensor:
    """
    Calculate elementwise IoU between two tensors of min/max boxes.

    Both tensors share the same shape (..., 4). A zero union gives IoU 0.

    Returns:
        IoU tensor of shape (...)
    """
    intersection_w = tf.maximum(
        tf.minimum(pred_boxes[..., 2], true_boxes[..., 2]) - tf.maximum(pred_boxes[..., 0], true_boxes[..., 0]),
        0.0)
    intersection_h = tf.maximum(
        tf.minimum(pred_boxes[..., 3], true_boxes[..., 3]) - tf.maximum(pred_boxes[..., 1], true_boxes[..., 1]),
        0.0)
    intersection_area = intersection_w * intersection_h

    pred_area = (pred_boxes[..., 2] - pred_boxes[..., 0]) * (pred_boxes[..., 3] - pred_boxes[..., 1])
    true_area = (true_boxes[..., 2] - true_boxes[..., 0]) * (true_boxes[..., 3] - true_boxes[..., 1])
    union_area = pred_area + true_area - intersection_area

    return tf.math.divide_no_nan(intersection_area, union_area)


def broadcast_iou(pred_boxes: tf.Tensor, true_boxes: tf.Tensor) -> tf.Tensor:
    """
    Calculate IoU between every predicted box and every true box.

    Args:
        pred_boxes: Min/max boxes of shape (..., 4), e.g. (grid_h, grid_w, num_anchors, 4)
        true_boxes: Min/max boxes of shape (n_true, 4)

    Returns:
        IoU tensor of shape (..., n_true)
    """
    pred_boxes = tf.expand_dims(pred_boxes, axis=-2)  # (..., 1, 4)
    true_boxes = tf.expand_dims(true_boxes, axis=0)  # (1, n_true, 4)

    new_shape = tf.broadcast_dynamic_shape(tf.shape(pred_boxes), tf.shape(true_boxes))
    pred_boxes = tf.broadcast_to(pred_boxes, new_shape)
    true_boxes = tf.broadcast_to(true_boxes, new_shape)

    return calculate_iou(pred_boxes, true_boxes)


def min_max_to_center(box: tf.Tensor) -> tf.Tensor:
    """Convert [xmin, ymin, xmax, ymax] boxes back to [x, y, w, h]."""
    box_mins = box[..., 0:2]
    box_maxes = box[..., 2:4]
    return tf.concat([(box_mins + box_maxes) / 2.0, box_maxes - box_mins], axis=-1)


def box_iou(box1: np.ndarray, box2: np.ndarray) -> float:
    """
    Calculate IoU between two single [x, y, w, h] boxes.

    Convenience wrapper around calculate_iou for NumPy inputs.
    """
    box1 = np.asarray(box1, dtype=np.float32)
    box2 = np.asarray(box2, dtype=np.float32)
    if box1.shape != (4,) or box2.shape != (4,):
        raise ValueError("Boxes must have 4 coordinates")
    iou = calculate_iou(transform_box_to_min_max(tf.constant(box1)),
                        transform_box_to_min_max(tf.constant(box2)))
    return float(iou.numpy())

#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
yolo3kit Example
Generates anchors from synthetic box sizes and evaluates the per-grid loss
and IoU metric on random grid tensors.
"""

import sys
import numpy as np
import tensorflow as tf
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from yolo3kit import generate_anchors, yolo3_loss, yolo3_metrics
from yolo3kit.data import AnnotationRecord


def create_synthetic_annotations(num_boxes=300, seed=0):
    """Box sizes drawn around a small, a medium and a large object size."""
    rng = np.random.default_rng(seed)
    centers = [(0.05, 0.08), (0.2, 0.25), (0.6, 0.5)]
    labels = ['small', 'medium', 'large']
    annotations = []
    for i in range(num_boxes):
        cluster = i % len(centers)
        w, h = centers[cluster]
        annotations.append(AnnotationRecord(
            box_w=float(np.clip(rng.normal(w, w * 0.2), 0.01, 1.0)),
            box_h=float(np.clip(rng.normal(h, h * 0.2), 0.01, 1.0)),
            label=labels[cluster],
        ))
    return annotations


def create_grid_tensors(grid_size, anchors_per_grid, num_classes, batch_size=2, seed=0):
    """Random raw predictions and a ground truth with one object per image."""
    rng = np.random.default_rng(seed)
    shape = (batch_size, grid_size, grid_size, anchors_per_grid, 5 + num_classes)
    y_pred = rng.normal(0.0, 1.0, size=shape).astype(np.float32)

    y_true = np.zeros(shape, dtype=np.float32)
    for b in range(batch_size):
        row, col, anchor = rng.integers(grid_size), rng.integers(grid_size), rng.integers(anchors_per_grid)
        y_true[b, row, col, anchor, 0:4] = rng.normal(0.0, 0.5, size=4)
        y_true[b, row, col, anchor, 4] = 1.0
        y_true[b, row, col, anchor, 5 + rng.integers(num_classes)] = 1.0
    return tf.constant(y_true), tf.constant(y_pred)


def main():
    num_classes = 3
    anchors_per_grid = 3
    grid_sizes = {'grid1': 13, 'grid2': 26, 'grid3': 52}

    print("Generating anchors...")
    anchors = generate_anchors(create_synthetic_annotations(), anchors_per_grid, seed=1234)
    for grid_id, grid_anchors in enumerate(anchors, start=1):
        print(f"  grid{grid_id}: {np.round(grid_anchors, 4).tolist()}")

    losses = yolo3_loss(anchors, num_classes)
    metrics = yolo3_metrics(anchors, num_classes)

    print("\nEvaluating loss and IoU per grid...")
    for grid_name, grid_size in grid_sizes.items():
        y_true, y_pred = create_grid_tensors(grid_size, anchors_per_grid, num_classes)
        loss = losses[grid_name](y_true, y_pred)
        iou = metrics[grid_name](y_true, y_pred)
        print(f"  {grid_name}: loss={loss.numpy().round(3).tolist()} avg_IoU={iou.numpy().round(3).tolist()}")


if __name__ == '__main__':
    main()

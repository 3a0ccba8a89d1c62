#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Tests for the YOLOv3 grid loss and the per-grid loss factory.
"""

import sys
from pathlib import Path
import numpy as np
import pytest
import tensorflow as tf

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from yolo3kit.losses import Yolo3GridLoss, yolo3_grid_loss, yolo3_grid_loss_components, yolo3_loss
from yolo3kit.utils.anchors import COCO_ANCHORS

LOG2 = np.log(2.0)


def make_single_object_grid(grid_size=2, num_classes=1, batch_size=1):
    """Ground truth with one object at cell (0, 0), class 0."""
    y_true = np.zeros((batch_size, grid_size, grid_size, 1, 5 + num_classes), dtype=np.float32)
    y_true[:, 0, 0, 0, :5] = [0.3, -0.2, 0.1, -0.1, 1.0]
    y_true[:, 0, 0, 0, 5] = 1.0
    return y_true


def test_perfect_prediction_has_near_zero_loss():
    print("=" * 60)
    print("Testing loss for a prediction matching the ground truth")
    print("=" * 60)
    anchors = [[0.5, 0.5]]
    y_true = make_single_object_grid()

    # Same box offsets, saturated logits for objectness and class
    y_pred = y_true.copy()
    y_pred[..., 4] = -30.0
    y_pred[:, 0, 0, 0, 4] = 30.0
    y_pred[:, 0, 0, 0, 5] = 30.0

    components = yolo3_grid_loss_components(tf.constant(y_true), tf.constant(y_pred), anchors,
                                            num_classes=1, nonobj_threshold=2.0)
    for name, value in components.items():
        print(f"  {name}: {value.numpy()}")
        assert value.shape == (1,)
        assert value.numpy()[0] < 1e-4

    assert components['bbox'].numpy()[0] == 0.0


def test_loss_is_sum_of_components():
    rng = np.random.default_rng(0)
    y_true = make_single_object_grid(grid_size=4, num_classes=2, batch_size=3)
    y_pred = rng.normal(size=y_true.shape).astype(np.float32)
    anchors = [[0.3, 0.4]]

    kwargs = dict(nonobj_threshold=0.5, bbox_lambda=2.0, obj_lambda=0.5, noobj_lambda=3.0,
                  class_lambda=1.5, class_weights=[1.0, 2.0])
    components = yolo3_grid_loss_components(y_true, y_pred, anchors, 2, **kwargs)
    total = yolo3_grid_loss(y_true, y_pred, anchors, 2, **kwargs)

    assert total.shape == (3,)
    expected = sum(value.numpy() for value in components.values())
    np.testing.assert_allclose(total.numpy(), expected, rtol=1e-5)


def test_lambdas_scale_components():
    rng = np.random.default_rng(1)
    y_true = make_single_object_grid(grid_size=3, num_classes=1, batch_size=2)
    y_pred = rng.normal(size=y_true.shape).astype(np.float32)
    anchors = [[0.5, 0.5]]

    base = yolo3_grid_loss_components(y_true, y_pred, anchors, 1)
    scaled = yolo3_grid_loss_components(y_true, y_pred, anchors, 1, bbox_lambda=2.0, obj_lambda=3.0,
                                        noobj_lambda=0.0, class_lambda=0.5)

    np.testing.assert_allclose(scaled['bbox'].numpy(), 2.0 * base['bbox'].numpy(), rtol=1e-5)
    np.testing.assert_allclose(scaled['obj'].numpy(), 3.0 * base['obj'].numpy(), rtol=1e-5)
    np.testing.assert_allclose(scaled['noobj'].numpy(), 0.0)
    np.testing.assert_allclose(scaled['class'].numpy(), 0.5 * base['class'].numpy(), rtol=1e-5)


def test_bbox_loss_is_area_scaled_squared_error():
    anchors = [[0.5, 0.5]]
    y_true = make_single_object_grid()
    y_true[:, 0, 0, 0, 0:4] = 0.0  # box (0.25, 0.25, 0.5, 0.5)
    y_pred = y_true.copy()
    y_pred[:, 0, 0, 0, 2] = np.log(2.0)  # predicted width 1.0

    components = yolo3_grid_loss_components(y_true, y_pred, anchors, 1)

    expected = (2.0 - 0.5 * 0.5) * (1.0 - 0.5) ** 2
    np.testing.assert_allclose(components['bbox'].numpy(), [expected], rtol=1e-5)


def test_ignore_mask_skips_overlapping_negatives():
    """
    With a unit anchor on a 2x2 grid, the true box at cell (0, 0) overlaps the
    boxes predicted at (0, 1) and (1, 0) with IoU 1/3 and the one at (1, 1)
    with IoU 1/7.
    """
    anchors = [[1.0, 1.0]]
    y_true = np.zeros((1, 2, 2, 1, 6), dtype=np.float32)
    y_true[0, 0, 0, 0, 4] = 1.0
    y_true[0, 0, 0, 0, 5] = 1.0
    y_pred = np.zeros_like(y_true)  # objectness 0.5 everywhere

    def noobj(threshold):
        components = yolo3_grid_loss_components(y_true, y_pred, anchors, 1, nonobj_threshold=threshold)
        return components['noobj'].numpy()[0]

    np.testing.assert_allclose(noobj(0.5), 3 * LOG2, rtol=1e-4)
    np.testing.assert_allclose(noobj(0.3), 1 * LOG2, rtol=1e-4)
    np.testing.assert_allclose(noobj(0.1), 0.0, atol=1e-7)


def test_image_without_objects_penalizes_every_cell():
    anchors = [[0.5, 0.5], [0.2, 0.2]]
    y_true = np.zeros((2, 3, 3, 2, 6), dtype=np.float32)
    y_true[1, 1, 1, 0, 4] = 1.0
    y_true[1, 1, 1, 0, 5] = 1.0
    y_pred = np.zeros_like(y_true)

    components = yolo3_grid_loss_components(y_true, y_pred, anchors, 1, nonobj_threshold=0.5)

    np.testing.assert_allclose(components['noobj'].numpy()[0], 18 * LOG2, rtol=1e-4)
    np.testing.assert_allclose(components['obj'].numpy()[0], 0.0)
    np.testing.assert_allclose(components['bbox'].numpy()[0], 0.0)
    np.testing.assert_allclose(components['class'].numpy()[0], 0.0)


def test_class_weights_scale_class_loss():
    anchors = [[0.5, 0.5]]
    y_true = np.zeros((1, 2, 2, 1, 7), dtype=np.float32)
    y_true[0, 0, 0, 0, 4] = 1.0
    y_true[0, 0, 0, 0, 5] = 1.0
    y_pred = np.zeros_like(y_true)  # class probabilities 0.5

    unweighted = yolo3_grid_loss_components(y_true, y_pred, anchors, 2)['class'].numpy()[0]
    weighted = yolo3_grid_loss_components(y_true, y_pred, anchors, 2,
                                          class_weights=[3.0, 0.0])['class'].numpy()[0]

    np.testing.assert_allclose(unweighted, 2 * LOG2, rtol=1e-4)
    np.testing.assert_allclose(weighted, 3 * LOG2, rtol=1e-4)


def test_loss_is_differentiable():
    rng = np.random.default_rng(3)
    y_true = tf.constant(make_single_object_grid(grid_size=3, num_classes=2, batch_size=2))
    y_pred = tf.Variable(rng.normal(size=y_true.shape).astype(np.float32))

    with tf.GradientTape() as tape:
        loss = tf.reduce_mean(yolo3_grid_loss(y_true, y_pred, [[0.4, 0.4]], 2))
    grads = tape.gradient(loss, y_pred)

    assert grads is not None
    assert np.all(np.isfinite(grads.numpy()))
    assert np.any(grads.numpy() != 0.0)


def test_loss_rejects_mismatched_inputs():
    y_true = tf.zeros((1, 2, 2, 1, 6))
    with pytest.raises(ValueError):
        yolo3_grid_loss(y_true, tf.zeros((1, 3, 3, 1, 6)), [[0.5, 0.5]], 1)
    with pytest.raises(ValueError):
        yolo3_grid_loss(y_true, tf.zeros((1, 2, 2, 1, 6)), [[0.5, 0.5]], 2)
    with pytest.raises(ValueError, match="class_weights"):
        yolo3_grid_loss(y_true, tf.zeros((1, 2, 2, 1, 6)), [[0.5, 0.5]], 1, class_weights=[1.0, 1.0])


def test_grid_loss_callable_matches_function():
    rng = np.random.default_rng(4)
    y_true = make_single_object_grid(grid_size=2, num_classes=1, batch_size=2)
    y_pred = rng.normal(size=y_true.shape).astype(np.float32)

    loss_fn = Yolo3GridLoss([[0.5, 0.5]], num_classes=1, nonobj_threshold=0.4, noobj_lambda=2.0)
    expected = yolo3_grid_loss(y_true, y_pred, [[0.5, 0.5]], 1, nonobj_threshold=0.4, noobj_lambda=2.0)

    assert loss_fn.__name__ == 'yolo3_loss'
    np.testing.assert_allclose(loss_fn(y_true, y_pred).numpy(), expected.numpy(), rtol=1e-6)


def test_yolo3_loss_factory():
    losses = yolo3_loss(COCO_ANCHORS, num_classes=80, nonobj_threshold=0.6)

    assert list(losses) == ['grid1', 'grid2', 'grid3']
    for grid_anchors, loss_fn in zip(COCO_ANCHORS, losses.values()):
        assert isinstance(loss_fn, Yolo3GridLoss)
        np.testing.assert_allclose(loss_fn.anchors, grid_anchors)
        assert loss_fn.nonobj_threshold == 0.6
        np.testing.assert_allclose(loss_fn.class_weights, np.ones(80))


def test_yolo3_loss_factory_validates_anchors():
    with pytest.raises(ValueError, match="3 grids"):
        yolo3_loss(COCO_ANCHORS[:2], num_classes=1)
    with pytest.raises(ValueError, match="same number"):
        yolo3_loss([COCO_ANCHORS[0], COCO_ANCHORS[1][:2], COCO_ANCHORS[2]], num_classes=1)
    with pytest.raises(ValueError, match="class_weights"):
        yolo3_loss(COCO_ANCHORS, num_classes=2, class_weights=[1.0])


if __name__ == '__main__':
    pytest.main([__file__, '-v'])

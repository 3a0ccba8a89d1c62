#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Build losses, metrics and anchor settings from a yolo3kit configuration.
"""

import logging
import numpy as np
from typing import Any, Dict, List, Optional

from ..losses import Yolo3GridLoss, yolo3_loss
from ..metrics import Yolo3GridIoU, yolo3_metrics
from ..utils.anchors import get_default_anchors

LOGGER = logging.getLogger("yolo3kit.config")


def load_anchors_from_config(config: Dict[str, Any]) -> List[np.ndarray]:
    """Load the anchors file named in config, or fall back to the COCO anchors."""
    anchors_path = config.get('anchors', {}).get('path')
    if anchors_path:
        LOGGER.info("Loading anchors from %s", anchors_path)
    else:
        LOGGER.info("No anchors path configured, using COCO anchors")
    return get_default_anchors(anchors_path)


def get_anchor_params(config: Dict[str, Any]) -> Dict[str, Any]:
    """Keyword arguments for generate_anchors from the anchors section."""
    anchors_config = config.get('anchors', {})
    return {
        'anchors_per_grid': int(anchors_config.get('anchors_per_grid', 3)),
        'n_iter': int(anchors_config.get('n_iter', 10)),
        'seed': int(anchors_config.get('seed', 1234)),
        'centroid_fun': anchors_config.get('centroid_fun', 'mean'),
    }


def build_loss_from_config(config: Dict[str, Any],
                           anchors: Optional[List[np.ndarray]] = None) -> Dict[str, Yolo3GridLoss]:
    """
    Create the per-grid losses described by config.

    Args:
        config: Configuration dictionary with num_classes and a loss section
        anchors: Anchors to bind; loaded from config when None

    Returns:
        {'grid1': loss, 'grid2': loss, 'grid3': loss}
    """
    if anchors is None:
        anchors = load_anchors_from_config(config)
    loss_config = config.get('loss', {})
    return yolo3_loss(
        anchors,
        num_classes=int(config['num_classes']),
        nonobj_threshold=float(loss_config.get('nonobj_threshold', 0.5)),
        bbox_lambda=float(loss_config.get('bbox_lambda', 1.0)),
        obj_lambda=float(loss_config.get('obj_lambda', 1.0)),
        noobj_lambda=float(loss_config.get('noobj_lambda', 1.0)),
        class_lambda=float(loss_config.get('class_lambda', 1.0)),
        class_weights=loss_config.get('class_weights'),
    )


def build_metrics_from_config(config: Dict[str, Any],
                              anchors: Optional[List[np.ndarray]] = None) -> Dict[str, Yolo3GridIoU]:
    """Create the per-grid IoU metrics described by config."""
    if anchors is None:
        anchors = load_anchors_from_config(config)
    return yolo3_metrics(anchors, num_classes=int(config['num_classes']))

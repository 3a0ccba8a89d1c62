#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Configuration module for yolo3kit.
"""

from .config_loader import ConfigLoader
from .builder import (
    build_loss_from_config,
    build_metrics_from_config,
    get_anchor_params,
    load_anchors_from_config
)

__all__ = [
    'ConfigLoader',
    'build_loss_from_config',
    'build_metrics_from_config',
    'get_anchor_params',
    'load_anchors_from_config'
]

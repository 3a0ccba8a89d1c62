#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Configuration loader for yolo3kit.
Handles YAML configuration loading and validation.
"""

import yaml
import os
from pathlib import Path
from typing import Dict, Any
import copy


DEFAULT_CONFIG: Dict[str, Any] = {
    'num_classes': None,
    'anchors': {
        'path': None,
        'anchors_per_grid': 3,
        'n_iter': 10,
        'seed': 1234,
        'centroid_fun': 'mean',
    },
    'loss': {
        'nonobj_threshold': 0.5,
        'bbox_lambda': 1.0,
        'obj_lambda': 1.0,
        'noobj_lambda': 1.0,
        'class_lambda': 1.0,
        'class_weights': None,
    },
}


class ConfigLoader:
    """Load and validate YAML configurations."""

    @staticmethod
    def load_config(config_path: str) -> Dict[str, Any]:
        """Load YAML config file."""
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)

        return config or {}

    @staticmethod
    def merge_configs(base_config: Dict, override_config: Dict) -> Dict:
        """Merge configurations with override priority."""
        def deep_merge(dict1, dict2):
            result = copy.deepcopy(dict1)

            for key, value in dict2.items():
                if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                    result[key] = deep_merge(result[key], value)
                else:
                    result[key] = value

            return result

        return deep_merge(base_config, override_config)

    @staticmethod
    def validate_config(config: Dict[str, Any], config_type: str = "loss") -> bool:
        """
        Validate configuration structure.

        config_type 'loss' needs num_classes and the loss section;
        'anchors' needs the anchors section only.
        """
        if config_type == "loss":
            required_keys = ["num_classes", "loss"]
        elif config_type == "anchors":
            required_keys = ["anchors"]
        else:
            raise ValueError(f"Unknown config type: {config_type}")

        for key in required_keys:
            if key not in config or config[key] is None:
                raise KeyError(f"Missing required key '{key}' in {config_type} config")

        if config_type == "loss":
            num_classes = config["num_classes"]
            if not isinstance(num_classes, int) or num_classes < 1:
                raise ValueError(f"Invalid num_classes: {num_classes}. Must be a positive integer.")
            loss_config = config["loss"]
            for key in ("nonobj_threshold", "bbox_lambda", "obj_lambda", "noobj_lambda", "class_lambda"):
                value = loss_config.get(key, DEFAULT_CONFIG["loss"][key])
                if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
                    raise ValueError(f"Invalid {key}: {value!r}. Must be a number >= 0.")
            class_weights = loss_config.get("class_weights")
            if class_weights is not None and len(class_weights) != num_classes:
                raise ValueError(f"class_weights length ({len(class_weights)}) must match "
                                 f"num_classes ({num_classes})")

        if config_type == "anchors":
            anchors_config = config["anchors"]
            if anchors_config.get("anchors_per_grid", 1) < 1:
                raise ValueError(f"Invalid anchors_per_grid: {anchors_config['anchors_per_grid']}. Must be >= 1.")
            if anchors_config.get("n_iter", 1) < 1:
                raise ValueError(f"Invalid n_iter: {anchors_config['n_iter']}. Must be >= 1.")

        return True

    @staticmethod
    def resolve_paths(config: Dict[str, Any], base_dir: str = ".") -> Dict[str, Any]:
        """Resolve relative file paths in configuration."""
        base_path = Path(base_dir).resolve()

        def resolve_path(value):
            if isinstance(value, str) and (value.endswith('.txt') or value.endswith('.csv')):
                if not os.path.isabs(value):
                    return str(base_path / value)
            elif isinstance(value, dict):
                return {k: resolve_path(v) for k, v in value.items()}
            elif isinstance(value, list):
                return [resolve_path(item) for item in value]
            return value

        return resolve_path(config)

    @staticmethod
    def load_and_validate(config_path: str, config_type: str = "loss") -> Dict[str, Any]:
        """Load, fill defaults, resolve paths, and validate configuration."""
        config = ConfigLoader.load_config(config_path)
        config = ConfigLoader.merge_configs(DEFAULT_CONFIG, config)
        config = ConfigLoader.resolve_paths(config, os.path.dirname(config_path))
        ConfigLoader.validate_config(config, config_type)
        return config

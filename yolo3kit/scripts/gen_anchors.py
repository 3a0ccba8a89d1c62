#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
yolo3kit Anchor Generation Script
Cluster annotated box sizes into YOLOv3 anchors with k-means++.

Usage:
    yolo3kit-anchors --annotations data/boxes.csv --output configs/anchors.txt
    yolo3kit-anchors --annotations data/boxes.csv --config configs/yolo3_config.yaml
    yolo3kit-anchors --annotations data/boxes.csv --anchors-per-grid 3 --seed 42
"""

import argparse
import logging
import sys

from ..config import ConfigLoader, get_anchor_params
from ..config.config_loader import DEFAULT_CONFIG
from ..data import load_annotation_table
from ..utils.anchors import AnchorUtils, generate_anchors, save_anchors


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description='Generate YOLOv3 anchors from an annotation table',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument(
        '--annotations',
        type=str,
        required=True,
        help='CSV file with box_w,box_h[,label] columns (sizes normalized by image size)'
    )
    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to yolo3kit config file (anchors section)'
    )
    parser.add_argument(
        '--output',
        type=str,
        default='anchors.txt',
        help='Where to write the anchors (one grid per line)'
    )
    parser.add_argument(
        '--anchors-per-grid',
        type=int,
        default=None,
        help='Anchors per grid (overrides config)'
    )
    parser.add_argument(
        '--n-iter',
        type=int,
        default=None,
        help='Maximum number of k-means iterations (overrides config)'
    )
    parser.add_argument(
        '--seed',
        type=int,
        default=None,
        help='Random seed (overrides config)'
    )
    parser.add_argument(
        '--centroid-fun',
        type=str,
        choices=['mean', 'median'],
        default=None,
        help='Centroid function (overrides config)'
    )
    return parser.parse_args(argv)


def main(argv=None):
    """Main anchor generation function."""
    args = parse_args(argv)
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    print("=" * 80)
    print("yolo3kit Anchor Generation")
    print("=" * 80)
    print(f"Annotations: {args.annotations}")

    try:
        if args.config:
            config = ConfigLoader.load_and_validate(args.config, config_type="anchors")
        else:
            config = ConfigLoader.merge_configs(DEFAULT_CONFIG, {})
    except (FileNotFoundError, KeyError, ValueError) as e:
        print(f"[ERROR] Error loading config: {e}")
        return 1

    overrides = {
        'anchors_per_grid': args.anchors_per_grid,
        'n_iter': args.n_iter,
        'seed': args.seed,
        'centroid_fun': args.centroid_fun,
    }
    config['anchors'].update({k: v for k, v in overrides.items() if v is not None})
    params = get_anchor_params(config)
    print(f"   Anchors per grid: {params['anchors_per_grid']}")
    print(f"   Iterations: {params['n_iter']}")
    print(f"   Seed: {params['seed']}")
    print()

    try:
        annotations = load_annotation_table(args.annotations)
        anchors = generate_anchors(annotations, **params)
    except (FileNotFoundError, ValueError) as e:
        print(f"[ERROR] Anchor generation failed: {e}")
        return 1

    save_anchors(anchors, args.output)

    info = AnchorUtils.get_anchor_info(anchors)
    for grid_id, grid_anchors in enumerate(anchors, start=1):
        pairs = ', '.join(f'({w:.4f}, {h:.4f})' for w, h in grid_anchors)
        print(f"   grid{grid_id}: {pairs}")
    print(f"\nSaved {info['total_anchors']} anchors to {args.output}")
    return 0


if __name__ == '__main__':
    sys.exit(main())

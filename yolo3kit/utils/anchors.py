#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Anchor utilities for yolo3kit.
Includes k-means++ anchor generation over box shapes and anchor file handling.
"""

import logging
import numpy as np
from typing import Any, Callable, Dict, List, Optional, Union

from ..data.annotations import AnnotationTable, annotations_to_arrays, count_labels

LOGGER = logging.getLogger("yolo3kit.anchors")

NUM_GRIDS = 3

# YOLOv3 COCO anchors (pixels at 416x416 input), largest grid first
COCO_ANCHORS = [
    np.array([[116, 90], [156, 198], [373, 326]], dtype=np.float32) / 416.0,
    np.array([[30, 61], [62, 45], [59, 119]], dtype=np.float32) / 416.0,
    np.array([[10, 13], [16, 30], [33, 23]], dtype=np.float32) / 416.0,
]

CENTROID_FUNCTIONS = {
    'mean': np.mean,
    'median': np.median,
}


class AnchorUtils:
    """Utility class for anchor operations."""

    @staticmethod
    def box_jaccard_distance(boxes: np.ndarray, anchors: np.ndarray) -> np.ndarray:
        """
        Calculate Jaccard distance between box shapes and anchor shapes.

        Boxes are compared as if they shared the same top-left corner, so only
        width and height matter.

        Args:
            boxes: Box sizes of shape (N, 2) - width and height
            anchors: Anchor sizes of shape (M, 2) - width and height

        Returns:
            Distances of shape (N, M), 1 - IoU
        """
        boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 2)
        anchors = np.asarray(anchors, dtype=np.float64).reshape(-1, 2)

        # (N, 1, 2) against (1, M, 2)
        intersection_wh = np.minimum(boxes[:, np.newaxis, :], anchors[np.newaxis, :, :])
        intersection_areas = intersection_wh[..., 0] * intersection_wh[..., 1]

        boxes_areas = boxes[:, 0] * boxes[:, 1]
        anchors_areas = anchors[:, 0] * anchors[:, 1]
        union_areas = boxes_areas[:, np.newaxis] + anchors_areas[np.newaxis, :] - intersection_areas

        iou = np.divide(intersection_areas, union_areas,
                        out=np.zeros_like(intersection_areas), where=union_areas > 0)
        return 1.0 - iou

    @staticmethod
    def validate_anchors(anchors: List[np.ndarray]) -> bool:
        """
        Validate anchor format and values.

        Anchors must be a list of (anchors_per_grid, 2) arrays of equal length
        with positive sizes.
        """
        if not isinstance(anchors, (list, tuple)) or len(anchors) == 0:
            return False

        lengths = set()
        for grid_anchors in anchors:
            grid_anchors = np.asarray(grid_anchors)
            if grid_anchors.ndim != 2 or grid_anchors.shape[1] != 2 or len(grid_anchors) == 0:
                return False
            if np.any(grid_anchors <= 0):
                return False
            lengths.add(len(grid_anchors))

        return len(lengths) == 1

    @staticmethod
    def get_anchor_info(anchors: List[np.ndarray]) -> Dict[str, Any]:
        """Summarize anchors per grid (aspect ratios and areas)."""
        if not AnchorUtils.validate_anchors(anchors):
            return {'valid': False, 'error': 'Invalid anchor format'}

        info = {
            'valid': True,
            'num_grids': len(anchors),
            'anchors_per_grid': len(anchors[0]),
            'total_anchors': sum(len(grid_anchors) for grid_anchors in anchors),
            'aspect_ratios': [],
            'areas': [],
        }
        for grid_anchors in anchors:
            grid_anchors = np.asarray(grid_anchors, dtype=np.float64)
            info['aspect_ratios'].append((grid_anchors[:, 0] / grid_anchors[:, 1]).tolist())
            info['areas'].append((grid_anchors[:, 0] * grid_anchors[:, 1]).tolist())
        return info

    @staticmethod
    def save_anchors(anchors: List[np.ndarray], filepath: str):
        """
        Save anchors to a text file, one grid per line.

        Format: w1,h1 w2,h2 w3,h3
        """
        with open(filepath, 'w') as f:
            for grid_anchors in anchors:
                f.write(' '.join(f'{w:.6f},{h:.6f}' for w, h in np.asarray(grid_anchors)) + '\n')

    @staticmethod
    def load_anchors(filepath: str) -> List[np.ndarray]:
        """
        Load anchors written by save_anchors.

        Raises:
            ValueError: If a pair cannot be parsed or the file holds no anchors
        """
        anchors = []
        with open(filepath, 'r') as f:
            for line_no, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                grid_anchors = []
                for pair in line.split():
                    try:
                        w, h = map(float, pair.rstrip(',').split(','))
                    except ValueError as e:
                        raise ValueError(f"{filepath}:{line_no}: invalid anchor '{pair}'") from e
                    grid_anchors.append([w, h])
                anchors.append(np.array(grid_anchors, dtype=np.float32))

        if not anchors:
            raise ValueError(f"No anchors found in {filepath}")
        return anchors


def check_grid_anchors(anchors: List[np.ndarray]) -> List[np.ndarray]:
    """
    Validate anchors for the three grids and convert them to float32 arrays.

    Raises:
        ValueError: If there are not exactly three grids, an anchor set is not
                    (anchors_per_grid, 2), or the grids hold different counts
    """
    anchors = [np.asarray(grid_anchors, dtype=np.float32) for grid_anchors in anchors]
    if len(anchors) != NUM_GRIDS:
        raise ValueError(f"Expected anchors for {NUM_GRIDS} grids, got {len(anchors)}")
    for grid_anchors in anchors:
        if grid_anchors.ndim != 2 or grid_anchors.shape[1] != 2:
            raise ValueError(f"Each grid's anchors must have shape (anchors_per_grid, 2), got {grid_anchors.shape}")
    if len({len(grid_anchors) for grid_anchors in anchors}) != 1:
        raise ValueError("All grids must have the same number of anchors")
    return anchors


def _resolve_centroid_fun(centroid_fun: Union[str, Callable]) -> Callable:
    if callable(centroid_fun):
        return centroid_fun
    if centroid_fun not in CENTROID_FUNCTIONS:
        raise ValueError(f"Unknown centroid_fun '{centroid_fun}'. "
                         f"Use one of {sorted(CENTROID_FUNCTIONS)} or a callable")
    return CENTROID_FUNCTIONS[centroid_fun]


def initialize_anchors(boxes: np.ndarray, total_anchors: int,
                       rng: np.random.Generator) -> np.ndarray:
    """
    Pick initial anchors with k-means++ seeding.

    The first anchor is a uniformly drawn box. Each next anchor is drawn with
    probability proportional to the box's Jaccard distance to its closest
    anchor so far.

    Args:
        boxes: Box sizes of shape (N, 2)
        total_anchors: Number of anchors to pick
        rng: NumPy random generator

    Returns:
        Initial anchors of shape (total_anchors, 2)
    """
    num_boxes = len(boxes)
    anchors = [boxes[rng.integers(num_boxes)]]

    for _ in range(1, total_anchors):
        min_distance = AnchorUtils.box_jaccard_distance(boxes, np.array(anchors)).min(axis=1)
        total = min_distance.sum()
        if total > 0:
            new_anchor_id = rng.choice(num_boxes, p=min_distance / total)
        else:
            # every box coincides with a chosen anchor
            new_anchor_id = rng.integers(num_boxes)
        anchors.append(boxes[new_anchor_id])

    return np.array(anchors, dtype=np.float64)


def kmeans_anchors(boxes: np.ndarray, total_anchors: int, n_iter: int = 10, seed: int = 1234,
                   centroid_fun: Union[str, Callable] = 'mean') -> np.ndarray:
    """
    Cluster box shapes into anchors with k-means++ and Jaccard distance.

    Returns:
        Anchors of shape (total_anchors, 2) in cluster order
    """
    centroid_fun = _resolve_centroid_fun(centroid_fun)
    rng = np.random.default_rng(seed)

    anchors = initialize_anchors(boxes, total_anchors, rng)
    for iteration in range(1, n_iter + 1):
        best_anchors = AnchorUtils.box_jaccard_distance(boxes, anchors).argmin(axis=1)

        new_anchors = anchors.copy()
        for anchor_id in range(total_anchors):
            members = boxes[best_anchors == anchor_id]
            # An anchor that lost all its boxes keeps its position
            if len(members):
                new_anchors[anchor_id] = [centroid_fun(members[:, 0]), centroid_fun(members[:, 1])]

        if np.array_equal(new_anchors, anchors):
            LOGGER.info("Anchors converged after %d iteration(s)", iteration)
            break
        anchors = new_anchors
    else:
        LOGGER.info("Anchors did not converge within %d iteration(s)", n_iter)

    return anchors


def split_anchors_by_grid(anchors: np.ndarray, anchors_per_grid: int) -> List[np.ndarray]:
    """
    Sort anchors by width (descending) and split them across grids.

    The first grid (coarsest) receives the widest anchors.
    """
    order = np.argsort(-anchors[:, 0], kind='stable')
    anchors_sorted = anchors[order].astype(np.float32)
    return [anchors_sorted[grid * anchors_per_grid:(grid + 1) * anchors_per_grid]
            for grid in range(NUM_GRIDS)]


def generate_anchors(annotations: AnnotationTable,
                     anchors_per_grid: int,
                     n_iter: int = 10,
                     seed: int = 1234,
                     centroid_fun: Union[str, Callable] = 'mean') -> List[np.ndarray]:
    """
    Generate anchors for the three YOLOv3 grids from annotated box sizes.

    Args:
        annotations: Annotation table (see annotations_to_arrays) with widths and
                     heights normalized by their image size
        anchors_per_grid: Number of anchors per grid
        n_iter: Maximum number of k-means iterations
        seed: Random seed
        centroid_fun: 'mean', 'median' or a callable reducing a 1-D array

    Returns:
        List of 3 arrays of shape (anchors_per_grid, 2), largest anchors first

    Raises:
        ValueError: On invalid parameters or fewer boxes than requested anchors
    """
    if anchors_per_grid < 1:
        raise ValueError(f"anchors_per_grid must be >= 1, got {anchors_per_grid}")
    if n_iter < 1:
        raise ValueError(f"n_iter must be >= 1, got {n_iter}")

    boxes, labels = annotations_to_arrays(annotations)
    total_anchors = anchors_per_grid * NUM_GRIDS
    if len(boxes) < total_anchors:
        raise ValueError(f"Insufficient data: {len(boxes)} annotation box(es) for "
                         f"{total_anchors} anchors")

    LOGGER.info("Boxes per label: %s", count_labels(labels))
    anchors = kmeans_anchors(boxes, total_anchors, n_iter=n_iter, seed=seed,
                             centroid_fun=centroid_fun)
    return split_anchors_by_grid(anchors, anchors_per_grid)


# Convenience functions
def box_jaccard_distance(boxes: np.ndarray, anchors: np.ndarray) -> np.ndarray:
    """Convenience function for Jaccard distance calculation."""
    return AnchorUtils.box_jaccard_distance(boxes, anchors)


def load_anchors(anchors_path: str) -> List[np.ndarray]:
    """Load anchors from file."""
    return AnchorUtils.load_anchors(anchors_path)


def save_anchors(anchors: List[np.ndarray], anchors_path: str):
    """Save anchors to file."""
    AnchorUtils.save_anchors(anchors, anchors_path)


def get_default_anchors(anchors_path: Optional[str] = None) -> List[np.ndarray]:
    """Load anchors from anchors_path, or return the COCO anchors."""
    if anchors_path:
        return load_anchors(anchors_path)
    return [grid_anchors.copy() for grid_anchors in COCO_ANCHORS]

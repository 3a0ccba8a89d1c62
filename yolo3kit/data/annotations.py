#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""Annotation table helpers for anchor generation."""

import csv
import os
import numpy as np
from collections import Counter
from typing import Dict, Iterable, List, Mapping, NamedTuple, Tuple, Union


class AnnotationRecord(NamedTuple):
    """One ground-truth box, width and height normalized by the image size."""
    box_w: float
    box_h: float
    label: str = ""


AnnotationTable = Union[Iterable[AnnotationRecord], Iterable[Tuple], Mapping[str, Iterable]]


def annotations_to_arrays(annotations: AnnotationTable) -> Tuple[np.ndarray, List[str]]:
    """
    Normalize an annotation table into a (N, 2) width/height array and labels.

    Accepts a sequence of AnnotationRecord (or plain (box_w, box_h[, label])
    tuples) or a column mapping {"box_w": [...], "box_h": [...], "label": [...]}.

    Returns:
        Tuple of (boxes, labels) where boxes has shape (N, 2)

    Raises:
        ValueError: On missing columns, ragged columns or non-positive sizes
    """
    if isinstance(annotations, Mapping):
        if 'box_w' not in annotations or 'box_h' not in annotations:
            raise ValueError("Annotation table must have 'box_w' and 'box_h' columns")
        widths = list(annotations['box_w'])
        heights = list(annotations['box_h'])
        labels = [str(label) for label in annotations.get('label', [''] * len(widths))]
        if not (len(widths) == len(heights) == len(labels)):
            raise ValueError("Annotation table columns must have the same length")
    else:
        widths, heights, labels = [], [], []
        for row in annotations:
            record = AnnotationRecord(*row)
            widths.append(record.box_w)
            heights.append(record.box_h)
            labels.append(str(record.label))

    boxes = np.stack([np.asarray(widths, dtype=np.float64),
                      np.asarray(heights, dtype=np.float64)], axis=-1).reshape(-1, 2)

    if not np.all(np.isfinite(boxes)) or np.any(boxes <= 0):
        raise ValueError("Annotation box widths and heights must be positive finite numbers")

    return boxes, labels


def count_labels(labels: Iterable[str]) -> Dict[str, int]:
    """Count boxes per label, sorted by label name."""
    return dict(sorted(Counter(labels).items()))


def load_annotation_table(table_path: str) -> List[AnnotationRecord]:
    """
    Load an annotation table from a CSV file.

    The file needs a header with box_w and box_h columns; label is optional.

    Args:
        table_path: Path to CSV file

    Returns:
        List of AnnotationRecord
    """
    if not os.path.exists(table_path):
        raise FileNotFoundError(f"Annotation table not found: {table_path}")

    records = []
    with open(table_path, 'r', newline='') as f:
        reader = csv.DictReader(f)
        if reader.fieldnames is None or not {'box_w', 'box_h'} <= set(reader.fieldnames):
            raise ValueError(f"{table_path} must have a header with box_w and box_h columns")
        for line_no, row in enumerate(reader, start=2):
            try:
                records.append(AnnotationRecord(float(row['box_w']),
                                                float(row['box_h']),
                                                (row.get('label') or '').strip()))
            except (TypeError, ValueError) as e:
                raise ValueError(f"{table_path}:{line_no}: invalid box size ({e})") from e
    return records

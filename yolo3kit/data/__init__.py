"""
yolo3kit Data Module.

Annotation tables consumed by the anchor generator.
"""

from .annotations import AnnotationRecord, annotations_to_arrays, count_labels, load_annotation_table

__all__ = [
    "AnnotationRecord",
    "annotations_to_arrays",
    "count_labels",
    "load_annotation_table",
]

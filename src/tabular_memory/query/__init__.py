"""Filter normalization, predicate building and reference execution.

Public API:
 - normalize_filter_key, normalize_filter_spec, FieldRef
 - build_predicate, Predicate, PredicateBuild
 - FrameQueryRunner (polars-backed reference runner)
"""

from .fields import DATA_PREFIX, FieldRef, normalize_field_name, normalize_filter_key, normalize_filter_spec
from .predicate import Clause, Comparison, Predicate, PredicateBuild, build_predicate
from .frame import FrameQueryRunner, apply_predicate, documents_to_frame, predicate_expr

__all__ = [
    "DATA_PREFIX",
    "FieldRef",
    "normalize_field_name",
    "normalize_filter_key",
    "normalize_filter_spec",
    "Clause",
    "Comparison",
    "Predicate",
    "PredicateBuild",
    "build_predicate",
    "FrameQueryRunner",
    "apply_predicate",
    "documents_to_frame",
    "predicate_expr",
]

"""
params パッケージ — パラメータ抽出とセキュリティ分類
"""

from __future__ import annotations

from .extractor import (
    GENERIC_FIELD_NAME,
    deduplicate,
    extract_field_name,
    extract_parameters,
    infer_parameter_type,
    runtime_parameters,
)
from .security import classify_security, count_password_fields

__all__ = [
    "GENERIC_FIELD_NAME",
    "classify_security",
    "count_password_fields",
    "deduplicate",
    "extract_field_name",
    "extract_parameters",
    "infer_parameter_type",
    "runtime_parameters",
]

"""
api パッケージ — 合成結果からの API 成果物生成
"""

from __future__ import annotations

from .packager import (
    API_VERSION,
    ApiMetadata,
    ApiPackage,
    ApiPackager,
    Endpoint,
    python_identifier,
    sanitize_name,
)

__all__ = [
    "API_VERSION",
    "ApiMetadata",
    "ApiPackage",
    "ApiPackager",
    "Endpoint",
    "python_identifier",
    "sanitize_name",
]

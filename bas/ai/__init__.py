"""
ai パッケージ — AI によるスクリプト改善・分析・ドキュメント生成

いずれも任意の後処理であり、失敗しても基本スクリプトは常に利用できる。
"""

from __future__ import annotations

from .analysis import (
    DocumentationWriter,
    InteractionAnalysis,
    InteractionAnalyzer,
    complexity_for,
    default_analysis,
    default_documentation,
    parse_analysis,
)
from .client import DEFAULT_MODELS, LlmClient, ModelRotation, OpenAiLlmClient, call_llm
from .enhance import EnhancementError, ResponseCache, ScriptEnhancer, cache_key, extract_code

__all__ = [
    "DEFAULT_MODELS",
    "DocumentationWriter",
    "EnhancementError",
    "InteractionAnalysis",
    "InteractionAnalyzer",
    "LlmClient",
    "ModelRotation",
    "OpenAiLlmClient",
    "ResponseCache",
    "ScriptEnhancer",
    "cache_key",
    "call_llm",
    "complexity_for",
    "default_analysis",
    "default_documentation",
    "extract_code",
    "parse_analysis",
]

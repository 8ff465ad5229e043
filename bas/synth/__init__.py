"""
synth パッケージ — トレースからのスクリプト合成
"""

from __future__ import annotations

from .ir import Locator, compile_trace, translate_selector, xpath_literal
from .synthesizer import (
    AutomationPackage,
    ScriptSynthesizer,
    estimate_runtime,
    estimate_runtime_ms,
)

__all__ = [
    "AutomationPackage",
    "Locator",
    "ScriptSynthesizer",
    "compile_trace",
    "estimate_runtime",
    "estimate_runtime_ms",
    "translate_selector",
    "xpath_literal",
]

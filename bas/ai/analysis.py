"""
InteractionAnalyzer / DocumentationWriter — AI による操作分析とドキュメント生成

いずれも失敗時は既定値にフォールバックし、例外を呼び出し側へ伝播しない。

主な機能:
  - InteractionAnalysis: 分析結果モデル（workflow / issues / optimizations / security / complexity）
  - default_analysis(): AI を使わない既定の分析
  - parse_analysis(): LLM 応答から JSON を取り出して分析結果に変換
  - default_documentation(): AI を使わない既定の Markdown ドキュメント
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..trace.schema import InteractionTrace
from .client import DEFAULT_TIMEOUT, LlmClient, ModelRotation, call_llm
from .prompts import SYSTEM_PROMPT, build_analysis_prompt, build_documentation_prompt

logger = logging.getLogger(__name__)

Complexity = Literal["low", "medium", "high"]

_FENCED_JSON = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
_JSON_LIKE = re.compile(r"\{.*\}", re.DOTALL)


# ---------------------------------------------------------------------------
# 分析結果モデル
# ---------------------------------------------------------------------------

class InteractionAnalysis(BaseModel):
    """操作列の分析結果。"""

    workflow: str = Field(default="ブラウザ自動化ワークフロー", description="主な処理の説明")
    issues: list[str] = Field(default_factory=list, description="潜在的な問題")
    optimizations: list[str] = Field(default_factory=list, description="最適化の提案")
    security: list[str] = Field(default_factory=list, description="セキュリティ上の考慮事項")
    complexity: Complexity = Field(default="medium", description="複雑度")

    @field_validator("issues", "optimizations", "security", mode="before")
    @classmethod
    def _to_string_list(cls, v: Any) -> list[str]:
        """LLM が文字列やオブジェクトを返した場合もリストに揃える。"""
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        if isinstance(v, dict):
            return [f"{k}: {val}" for k, val in v.items()]
        return [str(item) for item in v]

    @field_validator("complexity", mode="before")
    @classmethod
    def _normalize_complexity(cls, v: Any) -> str:
        value = str(v).strip().lower()
        return value if value in ("low", "medium", "high") else "medium"


def complexity_for(count: int) -> Complexity:
    """操作数から複雑度を判定する（5以下 low、10以下 medium、それ以上 high）。"""
    if count > 10:
        return "high"
    if count > 5:
        return "medium"
    return "low"


def default_analysis(trace: InteractionTrace) -> InteractionAnalysis:
    """AI を使わない既定の分析を返す。"""
    return InteractionAnalysis(
        workflow=f"{len(trace)} 件の操作からなる自動化ワークフロー",
        issues=["AI 分析が利用できないため手動レビューが必要です"],
        optimizations=["明示的な待機を追加する", "エラーハンドリングを強化する"],
        security=["機密データの扱いを確認する"],
        complexity=complexity_for(len(trace)),
    )


def parse_analysis(response: str) -> InteractionAnalysis:
    """LLM 応答を分析結果に変換する。

    JSON 全体、```json``` ブロック、JSON らしき部分文字列の順に試し、
    いずれも解釈できなければ汎用の分析結果を返す。
    """
    candidates = [response]
    fenced = _FENCED_JSON.search(response)
    if fenced:
        candidates.append(fenced.group(1))
    json_like = _JSON_LIKE.search(response)
    if json_like:
        candidates.append(json_like.group(0))

    for candidate in candidates:
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if not isinstance(data, dict):
            continue
        try:
            return InteractionAnalysis.model_validate(data)
        except ValidationError as exc:
            logger.debug("分析結果の検証に失敗: %s", exc)

    logger.warning("AI の分析結果を解釈できませんでした")
    return InteractionAnalysis(
        workflow="ブラウザ自動化ワークフロー",
        optimizations=["エラーハンドリングを追加する", "明示的な待機を使用する"],
        complexity="medium",
    )


def default_documentation(trace: InteractionTrace) -> str:
    """AI を使わない既定の Markdown ドキュメントを返す。"""
    return (
        "# ブラウザ自動化スクリプト\n"
        "\n"
        "## 概要\n"
        f"このスクリプトは {len(trace)} 件のブラウザ操作を自動化します。\n"
        "\n"
        "## 使い方\n"
        "```javascript\n"
        "const { runAutomation } = require('./playwright.js');\n"
        "await runAutomation({ headless: true, timeoutMs: 30000 });\n"
        "```\n"
        "\n"
        "## 設定\n"
        "- 対象サイトに合わせてセレクタを調整してください\n"
        "- ネットワーク状況に合わせてタイムアウトを調整してください\n"
        "- パスワードは config.password で渡してください\n"
        "\n"
        "## エラーハンドリング\n"
        "基本的なエラーハンドリングを含みます。実行結果を確認して調整してください。\n"
    )


# ---------------------------------------------------------------------------
# AI 協調者
# ---------------------------------------------------------------------------

class InteractionAnalyzer:
    """操作列を AI で分析する。失敗時は default_analysis() を返す。"""

    def __init__(
        self,
        llm_client: Optional[LlmClient] = None,
        rotation: Optional[ModelRotation] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._llm = llm_client
        self._rotation = rotation or ModelRotation()
        self._timeout = timeout

    async def analyze(self, trace: InteractionTrace) -> InteractionAnalysis:
        if self._llm is None:
            return default_analysis(trace)
        try:
            response = await call_llm(
                self._llm,
                SYSTEM_PROMPT,
                build_analysis_prompt(trace),
                model=self._rotation.current,
                timeout=self._timeout,
                max_tokens=1000,
                temperature=0.3,
            )
        except asyncio.TimeoutError:
            logger.warning("操作分析がタイムアウトしました")
            return default_analysis(trace)
        except Exception as exc:
            logger.warning("操作分析に失敗しました: %s", exc)
            return default_analysis(trace)
        return parse_analysis(response)


class DocumentationWriter:
    """スクリプトのドキュメントを AI で生成する。失敗時は既定のドキュメントを返す。"""

    def __init__(
        self,
        llm_client: Optional[LlmClient] = None,
        rotation: Optional[ModelRotation] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._llm = llm_client
        self._rotation = rotation or ModelRotation()
        self._timeout = timeout

    async def write(self, script: str, trace: InteractionTrace) -> str:
        if self._llm is None:
            return default_documentation(trace)
        try:
            response = await call_llm(
                self._llm,
                SYSTEM_PROMPT,
                build_documentation_prompt(script, trace),
                model=self._rotation.current,
                timeout=self._timeout,
                max_tokens=1500,
                temperature=0.2,
            )
        except asyncio.TimeoutError:
            logger.warning("ドキュメント生成がタイムアウトしました")
            return default_documentation(trace)
        except Exception as exc:
            logger.warning("ドキュメント生成に失敗しました: %s", exc)
            return default_documentation(trace)
        return response if response.strip() else default_documentation(trace)

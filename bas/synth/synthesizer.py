"""
ScriptSynthesizer — トレースから複数フレームワークのスクリプトを合成

トレースを中間表現（Op 列）にコンパイルし、フレームワークごとの
Jinja2 テンプレートで描画する。合成は純粋関数であり、同じトレースからは
常にバイト単位で同一の出力が得られる。I/O や外部副作用は持たない。

主な機能:
  - synthesize(): 指定フレームワークのスクリプトを生成
  - estimate_runtime(): 固定コスト表による実行時間の概算（保証値ではない）
  - build_configuration(): 自動化設定オブジェクトの生成
  - build_package(): 分析・全スクリプト・AI 改善版・ドキュメントをまとめた成果物
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, Iterable, Optional

from ..ai.analysis import InteractionAnalysis, default_analysis, default_documentation
from ..ai.enhance import EnhancementError
from ..core.rendering import render
from ..params.extractor import DEFAULT_TIMEOUT_MS
from ..params.security import classify_security, count_password_fields
from ..trace.schema import (
    ClickInteraction,
    Framework,
    InteractionTrace,
    NavigationInteraction,
    ScrollInteraction,
    SessionMetadata,
    TypeInteraction,
    WaitInteraction,
)
from .ir import compile_trace

if TYPE_CHECKING:
    from ..ai.analysis import DocumentationWriter, InteractionAnalyzer
    from ..ai.enhance import ScriptEnhancer

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# 実行時間の固定コスト表（ミリ秒）
# ---------------------------------------------------------------------------

NAVIGATION_COST_MS = 3000
CLICK_COST_MS = 500
SCROLL_COST_MS = 300
WAIT_COST_MS = 2000
DEFAULT_COST_MS = 200
TYPE_CHAR_COST_MS = 50
EMPTY_TYPE_COST_MS = 500

DEFAULT_VIEWPORT = (1280, 720)

_TEMPLATES = {
    Framework.PLAYWRIGHT: "playwright.js.j2",
    Framework.PUPPETEER: "puppeteer.js.j2",
    Framework.SELENIUM: "selenium.js.j2",
    Framework.CYPRESS: "cypress.js.j2",
}


# ---------------------------------------------------------------------------
# 実行時間の概算
# ---------------------------------------------------------------------------

def estimate_runtime_ms(trace: InteractionTrace) -> int:
    """操作ごとの固定コストを合計した概算実行時間（ミリ秒）を返す。"""
    total = 0
    for interaction in trace.interactions:
        if isinstance(interaction, NavigationInteraction):
            total += NAVIGATION_COST_MS
        elif isinstance(interaction, ClickInteraction):
            total += CLICK_COST_MS
        elif isinstance(interaction, TypeInteraction):
            text = interaction.text
            total += len(text) * TYPE_CHAR_COST_MS if text else EMPTY_TYPE_COST_MS
        elif isinstance(interaction, ScrollInteraction):
            total += SCROLL_COST_MS
        elif isinstance(interaction, WaitInteraction):
            total += WAIT_COST_MS
        else:
            total += DEFAULT_COST_MS
    return total


def estimate_runtime(trace: InteractionTrace) -> str:
    """概算実行時間を切り上げた秒数で "<n>s" 形式にして返す。"""
    return f"{math.ceil(estimate_runtime_ms(trace) / 1000)}s"


# ---------------------------------------------------------------------------
# 成果物パッケージ
# ---------------------------------------------------------------------------

@dataclass
class AutomationPackage:
    """build_package() の結果。

    Attributes:
        analysis: 操作分析
        scripts: フレームワーク名 → スクリプト
        enhanced_script: AI 改善版（失敗時は基本スクリプトと同一）
        enhanced: AI 改善が成功したか
        documentation: Markdown ドキュメント
        configuration: 自動化設定
        metadata: 操作数・複雑度・概算実行時間などの付随情報
    """

    analysis: InteractionAnalysis
    scripts: dict[str, str]
    enhanced_script: str
    enhanced: bool
    documentation: str
    configuration: dict[str, Any]
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def basic_script(self) -> str:
        """基本 Playwright スクリプトを返す。"""
        return self.scripts[Framework.PLAYWRIGHT.value]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["analysis"] = self.analysis.model_dump()
        return data


# ---------------------------------------------------------------------------
# ScriptSynthesizer 本体
# ---------------------------------------------------------------------------

class ScriptSynthesizer:
    """トレースからスクリプトを合成するクラス。

    状態を持たないため、同じトレースに対して並行に呼び出してよい。
    """

    def __init__(
        self,
        viewport: tuple[int, int] = DEFAULT_VIEWPORT,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        """ScriptSynthesizer を初期化する。

        Args:
            viewport: 生成スクリプトのビューポートサイズ (幅, 高さ)
            timeout_ms: config.timeoutMs 未指定時の既定タイムアウト（ミリ秒）
        """
        self._viewport = {"width": viewport[0], "height": viewport[1]}
        self._timeout_ms = timeout_ms

    # -------------------------------------------------------------------
    # スクリプト合成
    # -------------------------------------------------------------------

    def render(self, trace: InteractionTrace, framework: Framework) -> str:
        """1フレームワーク分のスクリプトを生成する。

        Args:
            trace: 対象トレース
            framework: 出力先フレームワーク

        Returns:
            生成されたソースコード
        """
        framework = Framework(framework)
        ops = compile_trace(trace, framework)
        return render(
            _TEMPLATES[framework],
            ops=ops,
            viewport=self._viewport,
            timeout_ms=self._timeout_ms,
            estimated_runtime=estimate_runtime(trace),
        )

    def synthesize(
        self,
        trace: InteractionTrace,
        targets: Optional[Iterable[Framework]] = None,
    ) -> dict[Framework, str]:
        """指定フレームワークのスクリプトを生成する。

        Args:
            trace: 対象トレース
            targets: 出力先フレームワーク。None の場合は全フレームワーク

        Returns:
            フレームワーク → ソースコード（Framework の定義順）
        """
        requested = set(Framework) if targets is None else {Framework(t) for t in targets}
        result = {
            framework: self.render(trace, framework)
            for framework in Framework
            if framework in requested
        }
        logger.info(
            "スクリプトを合成しました: %d 件の操作 → %s",
            len(trace),
            ", ".join(f.value for f in result),
        )
        return result

    def estimate_runtime(self, trace: InteractionTrace) -> str:
        return estimate_runtime(trace)

    # -------------------------------------------------------------------
    # 設定オブジェクト
    # -------------------------------------------------------------------

    def build_configuration(
        self,
        trace: InteractionTrace,
        analysis: Optional[InteractionAnalysis] = None,
    ) -> dict[str, Any]:
        """自動化設定オブジェクトを生成する。

        名前はトレースの開始タイムスタンプから決めるため、
        同じトレースからは常に同じ設定が得られる。

        Args:
            trace: 対象トレース
            analysis: 操作分析。None の場合は既定の分析を使用

        Returns:
            automation / browser / targets / security / optimization を持つ辞書
        """
        analysis = analysis or default_analysis(trace)

        urls = [i.url for i in trace.interactions if isinstance(i, NavigationInteraction)]
        selectors = [
            i.selector for i in trace.interactions if getattr(i, "selector", None)
        ]

        return {
            "automation": {
                "name": f"Automation_{trace.start_timestamp}",
                "description": analysis.workflow,
                "complexity": analysis.complexity,
                "estimatedDuration": estimate_runtime(trace),
            },
            "browser": {
                "headless": False,
                "slowMo": 100,
                "timeout": self._timeout_ms,
                "viewport": dict(self._viewport),
            },
            "targets": {
                "urls": list(dict.fromkeys(urls)),
                "selectors": list(dict.fromkeys(selectors)),
            },
            "security": {
                "passwordFields": count_password_fields(trace),
                "sensitiveData": list(analysis.security),
            },
            "optimization": {
                "caching": True,
                "retries": 3,
                "parallelization": False,
            },
        }

    # -------------------------------------------------------------------
    # 成果物パッケージ
    # -------------------------------------------------------------------

    async def build_package(
        self,
        trace: InteractionTrace,
        metadata: Optional[SessionMetadata] = None,
        enhancer: Optional[ScriptEnhancer] = None,
        analyzer: Optional[InteractionAnalyzer] = None,
        documenter: Optional[DocumentationWriter] = None,
    ) -> AutomationPackage:
        """分析・全スクリプト・改善版・ドキュメント・設定をまとめて生成する。

        AI 協調者はいずれも任意。改善に失敗した場合は基本スクリプトを
        改善版としてそのまま採用する。

        Args:
            trace: 対象トレース
            metadata: 記録セッションの付随情報
            enhancer: スクリプト改善の協調者
            analyzer: 操作分析の協調者
            documenter: ドキュメント生成の協調者

        Returns:
            AutomationPackage
        """
        metadata = metadata or SessionMetadata()
        scripts = {f.value: source for f, source in self.synthesize(trace).items()}
        basic_script = scripts[Framework.PLAYWRIGHT.value]

        analysis = await analyzer.analyze(trace) if analyzer else default_analysis(trace)

        enhanced_script = basic_script
        enhanced = False
        if enhancer is not None:
            try:
                enhanced_script = await enhancer.enhance(basic_script, trace, metadata)
                enhanced = True
            except EnhancementError as exc:
                logger.warning("AI 改善に失敗したため基本スクリプトを使用します: %s", exc)

        if documenter is not None:
            documentation = await documenter.write(enhanced_script, trace)
        else:
            documentation = default_documentation(trace)

        security = classify_security(trace)

        return AutomationPackage(
            analysis=analysis,
            scripts=scripts,
            enhanced_script=enhanced_script,
            enhanced=enhanced,
            documentation=documentation,
            configuration=self.build_configuration(trace, analysis),
            metadata={
                **metadata.model_dump(exclude_none=True),
                "interactionCount": len(trace),
                "complexity": analysis.complexity,
                "estimatedRuntime": estimate_runtime(trace),
                "requiresAuth": security.requiresAuth,
            },
        )

"""
ScriptSynthesizer のユニットテスト

以下を検証する:
  - 全フレームワークで URL → セレクタの順に出力されること
  - 同じトレースから同一の出力が得られること（純粋関数）
  - 未対応の操作がマーカーコメントとして残ること
  - password の実値が生成コードに埋め込まれないこと
  - 実行時間の概算と設定オブジェクト
  - AI 協調者の有無・失敗時の build_package()
"""

from __future__ import annotations

import asyncio

import pytest
from hypothesis import given, settings

from bas.ai.analysis import InteractionAnalysis
from bas.ai.enhance import EnhancementError
from bas.synth.synthesizer import (
    AutomationPackage,
    ScriptSynthesizer,
    estimate_runtime,
    estimate_runtime_ms,
)
from bas.trace.schema import (
    ClickInteraction,
    Framework,
    InteractionTrace,
    KeyPressInteraction,
    NavigationInteraction,
    ScrollInteraction,
    SessionMetadata,
    SubmitInteraction,
    TypeInteraction,
    UnknownInteraction,
    WaitInteraction,
)
from conftest import make_trace, trace_strategy

URL = "https://shop.example.com/catalog?page=2"
SELECTOR = "#add-to-cart"


@pytest.fixture
def synthesizer() -> ScriptSynthesizer:
    return ScriptSynthesizer()


@pytest.fixture
def nav_click_trace() -> InteractionTrace:
    return make_trace(
        NavigationInteraction(url=URL),
        ClickInteraction(selector=SELECTOR, elementTag="button"),
    )


# ---------------------------------------------------------------------------
# スクリプト合成
# ---------------------------------------------------------------------------

class TestSynthesize:
    """synthesize() のテスト"""

    def test_all_frameworks_by_default(
        self, synthesizer: ScriptSynthesizer, nav_click_trace: InteractionTrace,
    ) -> None:
        """targets 省略時は全フレームワークを定義順に生成すること。"""
        scripts = synthesizer.synthesize(nav_click_trace)
        assert list(scripts) == list(Framework)

    def test_selected_targets(
        self, synthesizer: ScriptSynthesizer, nav_click_trace: InteractionTrace,
    ) -> None:
        """指定したフレームワークのみ生成すること。"""
        scripts = synthesizer.synthesize(nav_click_trace, {Framework.CYPRESS, Framework.SELENIUM})
        assert list(scripts) == [Framework.SELENIUM, Framework.CYPRESS]

    @pytest.mark.parametrize("framework", list(Framework))
    def test_url_then_selector(
        self, synthesizer: ScriptSynthesizer, nav_click_trace: InteractionTrace,
        framework: Framework,
    ) -> None:
        """URL とセレクタの両方をこの順で含むこと。"""
        source = synthesizer.render(nav_click_trace, framework)
        assert URL in source
        assert SELECTOR in source
        assert source.index(URL) < source.index(SELECTOR)

    @pytest.mark.parametrize("framework", list(Framework))
    def test_deterministic(
        self, synthesizer: ScriptSynthesizer, full_trace: InteractionTrace,
        framework: Framework,
    ) -> None:
        """同じトレースを2回合成するとバイト単位で同一になること。"""
        first = synthesizer.render(full_trace, framework)
        second = ScriptSynthesizer().render(full_trace, framework)
        assert first.encode("utf-8") == second.encode("utf-8")

    @pytest.mark.parametrize("framework", list(Framework))
    def test_unsupported_marker(
        self, synthesizer: ScriptSynthesizer, full_trace: InteractionTrace,
        framework: Framework,
    ) -> None:
        """未対応の操作がマーカーコメントとして出力されること。"""
        source = synthesizer.render(full_trace, framework)
        assert "// Unsupported action: hover" in source
        assert "// Step 8: hover" in source

    @pytest.mark.parametrize("framework", list(Framework))
    def test_password_is_not_embedded(
        self, synthesizer: ScriptSynthesizer, login_trace: InteractionTrace,
        framework: Framework,
    ) -> None:
        """password はセンチネルも実値も埋め込まず実行時設定から渡すこと。"""
        source = synthesizer.render(login_trace, framework)
        assert "[PASSWORD]" not in source
        assert "hunter2" not in source
        if framework is Framework.CYPRESS:
            assert "Cypress.env('password')" in source
        else:
            assert "config.password ?? ''" in source

    @pytest.mark.parametrize("framework", list(Framework))
    def test_captured_quotes_are_escaped(
        self, synthesizer: ScriptSynthesizer, framework: Framework,
    ) -> None:
        """入力値の引用符が文字列リテラルとしてエスケープされること。"""
        trace = make_trace(
            NavigationInteraction(url="https://example.com/"),
            TypeInteraction(selector='[name="q"]', text="it's \"quoted\""),
        )
        source = synthesizer.render(trace, framework)
        assert '"it\'s \\"quoted\\""' in source

    def test_viewport(self, nav_click_trace: InteractionTrace) -> None:
        """指定したビューポートサイズが出力されること。"""
        source = ScriptSynthesizer(viewport=(1920, 1080)).render(
            nav_click_trace, Framework.PLAYWRIGHT,
        )
        assert "width: 1920, height: 1080" in source

    @pytest.mark.parametrize("framework", list(Framework))
    def test_default_timeout(self, nav_click_trace: InteractionTrace, framework: Framework) -> None:
        """指定した既定タイムアウトが全フレームワークに出力されること。"""
        default_source = ScriptSynthesizer().render(nav_click_trace, framework)
        custom_source = ScriptSynthesizer(timeout_ms=4321).render(nav_click_trace, framework)
        assert "?? 30000;" in default_source
        assert "?? 4321;" in custom_source

    def test_selenium_uses_xpath_for_text_selector(
        self, synthesizer: ScriptSynthesizer, login_trace: InteractionTrace,
    ) -> None:
        """Selenium ではテキストセレクタが By.xpath になること。"""
        source = synthesizer.render(login_trace, Framework.SELENIUM)
        assert 'By.xpath("//button[contains(normalize-space(.), \\"Sign in\\")]")' in source
        assert 'By.css("#login-form")' in source

    def test_cypress_key_presses(self, synthesizer: ScriptSynthesizer) -> None:
        """Cypress では Enter / Escape / Tab がそれぞれの方法で送られること。"""
        trace = make_trace(
            NavigationInteraction(url="https://example.com/"),
            KeyPressInteraction(key="Enter"),
            KeyPressInteraction(key="Escape"),
            KeyPressInteraction(key="Tab"),
        )
        source = synthesizer.render(trace, Framework.CYPRESS)
        assert "cy.focused().type('{enter}');" in source
        assert "cy.focused().type('{esc}');" in source
        assert "trigger('keydown', { key: \"Tab\" })" in source

    @settings(max_examples=25, deadline=None)
    @given(trace=trace_strategy(max_size=10))
    def test_every_step_is_visible(self, trace: InteractionTrace) -> None:
        """全フレームワークの出力に全ステップの番号が現れること。"""
        scripts = ScriptSynthesizer().synthesize(trace)
        for source in scripts.values():
            for step in range(1, len(trace) + 1):
                assert f"// Step {step}: " in source


# ---------------------------------------------------------------------------
# 実行時間の概算
# ---------------------------------------------------------------------------

class TestEstimateRuntime:
    """estimate_runtime() のテスト"""

    def test_navigation_and_ten_characters(self) -> None:
        """navigation と10文字の入力は4秒と見積もられること。"""
        trace = make_trace(
            NavigationInteraction(url="https://example.com/"),
            TypeInteraction(selector="#q", text="0123456789"),
        )
        assert estimate_runtime_ms(trace) == 3500
        assert estimate_runtime(trace) == "4s"

    def test_cost_table(self) -> None:
        """操作種別ごとの固定コストが合計されること。"""
        trace = make_trace(
            NavigationInteraction(url="https://example.com/"),
            ClickInteraction(selector="#a"),
            ScrollInteraction(x=0, y=100),
            WaitInteraction(selector="#b"),
            SubmitInteraction(selector="#f"),
            TypeInteraction(selector="#q", text=""),
            UnknownInteraction(action="hover"),
        )
        assert estimate_runtime_ms(trace) == 3000 + 500 + 300 + 2000 + 200 + 500 + 200
        assert estimate_runtime(trace) == "7s"

    def test_empty_trace(self) -> None:
        """空のトレースは0秒であること。"""
        assert estimate_runtime(InteractionTrace()) == "0s"


# ---------------------------------------------------------------------------
# 設定オブジェクト
# ---------------------------------------------------------------------------

class TestBuildConfiguration:
    """build_configuration() のテスト"""

    def test_configuration(
        self, synthesizer: ScriptSynthesizer, login_trace: InteractionTrace,
    ) -> None:
        """名前が開始タイムスタンプから決まり、対象と設定値が含まれること。"""
        config = synthesizer.build_configuration(login_trace)

        assert config["automation"]["name"] == "Automation_1700000000000"
        assert config["automation"]["complexity"] == "low"
        assert config["automation"]["estimatedDuration"] == estimate_runtime(login_trace)
        assert config["browser"]["viewport"] == {"width": 1280, "height": 720}
        assert config["targets"]["urls"] == [login_trace.start_url]
        assert config["targets"]["selectors"] == [
            '[name="email"]', "#password", 'button:contains("Sign in")', "#login-form",
        ]
        assert config["security"]["passwordFields"] == 1
        assert config["optimization"]["retries"] == 3

    def test_browser_timeout(self, login_trace: InteractionTrace) -> None:
        """ブラウザ設定のタイムアウトが指定値になること。"""
        config = ScriptSynthesizer(timeout_ms=4321).build_configuration(login_trace)
        assert config["browser"]["timeout"] == 4321

    def test_duplicate_targets_are_removed(self, synthesizer: ScriptSynthesizer) -> None:
        """URL とセレクタは出現順に重複なく列挙されること。"""
        trace = make_trace(
            NavigationInteraction(url="https://example.com/a"),
            ClickInteraction(selector="#next"),
            NavigationInteraction(url="https://example.com/b"),
            ClickInteraction(selector="#next"),
            NavigationInteraction(url="https://example.com/a"),
        )
        config = synthesizer.build_configuration(trace)
        assert config["targets"]["urls"] == ["https://example.com/a", "https://example.com/b"]
        assert config["targets"]["selectors"] == ["#next"]

    def test_deterministic(
        self, synthesizer: ScriptSynthesizer, login_trace: InteractionTrace,
    ) -> None:
        """同じトレースからは同じ設定が得られること。"""
        assert synthesizer.build_configuration(login_trace) == ScriptSynthesizer().build_configuration(login_trace)


# ---------------------------------------------------------------------------
# build_package
# ---------------------------------------------------------------------------

class _FakeEnhancer:
    def __init__(self, result: str | None = None) -> None:
        self.result = result
        self.calls = 0

    async def enhance(self, basic_script, trace, metadata=None) -> str:
        self.calls += 1
        if self.result is None:
            raise EnhancementError("全てのモデルで改善に失敗しました")
        return self.result


class _FakeAnalyzer:
    async def analyze(self, trace) -> InteractionAnalysis:
        return InteractionAnalysis(workflow="ログイン", complexity="high", security=["認証情報"])


class _FakeDocumenter:
    def __init__(self) -> None:
        self.received_script = None

    async def write(self, script, trace) -> str:
        self.received_script = script
        return "# ドキュメント\n"


class TestBuildPackage:
    """build_package() のテスト"""

    def test_without_collaborators(
        self, synthesizer: ScriptSynthesizer, login_trace: InteractionTrace,
    ) -> None:
        """協調者なしでは基本スクリプトと既定の分析・ドキュメントを使うこと。"""
        package = asyncio.run(synthesizer.build_package(login_trace))

        assert isinstance(package, AutomationPackage)
        assert set(package.scripts) == {f.value for f in Framework}
        assert package.enhanced is False
        assert package.enhanced_script == package.basic_script
        assert package.documentation.startswith("# ブラウザ自動化スクリプト")
        assert package.metadata["interactionCount"] == 5
        assert package.metadata["requiresAuth"] is True
        assert package.metadata["estimatedRuntime"] == estimate_runtime(login_trace)

    def test_enhancement_success(
        self, synthesizer: ScriptSynthesizer, login_trace: InteractionTrace,
    ) -> None:
        """改善に成功した場合は改善版を採用し、ドキュメントにも渡すこと。"""
        documenter = _FakeDocumenter()
        package = asyncio.run(synthesizer.build_package(
            login_trace,
            SessionMetadata(title="Login", url=login_trace.start_url),
            enhancer=_FakeEnhancer("// enhanced\n"),
            analyzer=_FakeAnalyzer(),
            documenter=documenter,
        ))

        assert package.enhanced is True
        assert package.enhanced_script == "// enhanced\n"
        assert documenter.received_script == "// enhanced\n"
        assert package.analysis.complexity == "high"
        assert package.configuration["security"]["sensitiveData"] == ["認証情報"]
        assert package.metadata["title"] == "Login"

    def test_enhancement_failure_falls_back(
        self, synthesizer: ScriptSynthesizer, login_trace: InteractionTrace,
    ) -> None:
        """改善に失敗しても例外を送出せず基本スクリプトを採用すること。"""
        enhancer = _FakeEnhancer(None)
        package = asyncio.run(synthesizer.build_package(login_trace, enhancer=enhancer))

        assert enhancer.calls == 1
        assert package.enhanced is False
        assert package.enhanced_script == package.basic_script

    def test_to_dict(
        self, synthesizer: ScriptSynthesizer, login_trace: InteractionTrace,
    ) -> None:
        """to_dict() が分析結果を辞書に変換して含むこと。"""
        data = asyncio.run(synthesizer.build_package(login_trace)).to_dict()
        assert isinstance(data["analysis"], dict)
        assert data["analysis"]["complexity"] == "low"

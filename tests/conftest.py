"""
テスト共通フィクスチャ・Hypothesis ストラテジー定義

全テストモジュールで共有するフィクスチャとデータ生成器を提供する。
"""

from __future__ import annotations

from pathlib import Path

import pytest
from hypothesis import strategies as st

from bas.recorder.capture import InMemorySurface
from bas.trace.schema import (
    ClickInteraction,
    InteractionTrace,
    KeyPressInteraction,
    NavigationInteraction,
    ScrollInteraction,
    SubmitInteraction,
    TypeInteraction,
    UnknownInteraction,
    WaitInteraction,
)


# ---------------------------------------------------------------------------
# ヘルパー
# ---------------------------------------------------------------------------

class FakeClock:
    """手動で進める時計（秒）。CaptureSession の時計注入に使用する。"""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_trace(*interactions) -> InteractionTrace:
    """relativeTimeMs を 100ms 刻みで振り直してトレースを作る。"""
    items = [
        i.model_copy(update={"relativeTimeMs": index * 100})
        for index, i in enumerate(interactions)
    ]
    return InteractionTrace(interactions=tuple(items))


# ---------------------------------------------------------------------------
# pytest フィクスチャ
# ---------------------------------------------------------------------------

@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """一時ディレクトリを提供する pytest フィクスチャ。"""
    return tmp_path


@pytest.fixture
def surface() -> InMemorySurface:
    """記録開始 URL が設定済みのメモリ上キャプチャ面。"""
    return InMemorySurface("https://example.com/login")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(start=1000.0)


@pytest.fixture
def login_trace() -> InteractionTrace:
    """ログインフローのトレース。

    検索クエリ付き URL への遷移、email / password の入力、送信を含む。
    """
    return InteractionTrace(
        interactions=(
            NavigationInteraction(
                url="https://example.com/login?next=%2Fhome&lang=ja",
                timestamp=1700000000000,
                relativeTimeMs=0,
            ),
            TypeInteraction(
                selector='[name="email"]',
                text="user@example.com",
                inputKind="email",
                timestamp=1700000001000,
                relativeTimeMs=1000,
            ),
            TypeInteraction(
                selector="#password",
                text="hunter2",
                inputKind="password",
                timestamp=1700000002000,
                relativeTimeMs=2000,
            ),
            ClickInteraction(
                selector='button:contains("Sign in")',
                elementTag="button",
                textSnippet="Sign in",
                timestamp=1700000003000,
                relativeTimeMs=3000,
            ),
            SubmitInteraction(
                selector="#login-form",
                elementTag="form",
                timestamp=1700000003100,
                relativeTimeMs=3100,
            ),
        )
    )


@pytest.fixture
def full_trace() -> InteractionTrace:
    """全種別の Interaction（未知の種別を含む）を1つずつ含むトレース。"""
    return make_trace(
        NavigationInteraction(url="https://example.com/", timestamp=1700000000000),
        ClickInteraction(selector="#menu", elementTag="a"),
        TypeInteraction(selector='[name="q"]', text="shoes"),
        ScrollInteraction(x=0, y=640),
        SubmitInteraction(selector=".search-form", elementTag="form"),
        KeyPressInteraction(key="Enter", selector='[name="q"]'),
        WaitInteraction(selector=".results"),
        UnknownInteraction(action="hover", selector="#menu"),
    )


# ---------------------------------------------------------------------------
# Hypothesis ストラテジー
# ---------------------------------------------------------------------------

_identifiers = st.from_regex(r"[a-z][a-z0-9-]{2,12}", fullmatch=True)
_selectors = st.one_of(
    _identifiers.map(lambda s: f"#{s}"),
    _identifiers.map(lambda s: f".{s}"),
    _identifiers.map(lambda s: f'[name="{s}"]'),
)


def interaction_strategy():
    """navigation 以外の Interaction を生成する Hypothesis ストラテジー。"""
    return st.one_of(
        st.builds(ClickInteraction, selector=_selectors, elementTag=st.just("button")),
        st.builds(
            TypeInteraction,
            selector=_selectors,
            text=st.text(max_size=30),
            inputKind=st.sampled_from(["text", "email", "password", "search"]),
        ),
        st.builds(
            ScrollInteraction,
            x=st.integers(min_value=0, max_value=5000),
            y=st.integers(min_value=0, max_value=5000),
        ),
        st.builds(SubmitInteraction, selector=_selectors),
        st.builds(KeyPressInteraction, key=st.sampled_from(["Enter", "Tab", "Escape"])),
        st.builds(WaitInteraction, selector=_selectors),
    )


def trace_strategy(max_size: int = 15):
    """先頭が navigation のトレースを生成する Hypothesis ストラテジー。"""
    return st.lists(interaction_strategy(), max_size=max_size).map(
        lambda items: make_trace(
            NavigationInteraction(url="https://example.com/start"), *items
        )
    )

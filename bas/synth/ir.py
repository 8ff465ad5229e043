"""
合成用中間表現 — Interaction を1対1でステートメントに変換

トレースの各 Interaction を、出力先フレームワークに依存しない
ステートメント（Op）へ順序を保ったまま変換する。セレクタだけは
フレームワークごとに解釈できる形（Locator）へ翻訳しておく。

テンプレートは Op の kind で分岐してネイティブ呼び出しを出力する。
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import ClassVar, Union

from ..trace.schema import (
    PASSWORD_SENTINEL,
    ClickInteraction,
    Framework,
    InteractionTrace,
    KeyPressInteraction,
    NavigationInteraction,
    ScrollInteraction,
    SubmitInteraction,
    TypeInteraction,
    WaitInteraction,
)

# tag:contains("text") 形式のテキスト擬似セレクタ
_CONTAINS_PATTERN = re.compile(r'^([A-Za-z][\w-]*):contains\("((?:[^"\\]|\\.)*)"\)$')
_NTH_CHILD_PATTERN = re.compile(r"^([A-Za-z][\w-]*):nth-child\((\d+)\)$")
_ATTRIBUTE_PATTERN = re.compile(r'^\[([\w-]+)="((?:[^"\\]|\\.)*)"\]$')
_UNESCAPE_PATTERN = re.compile(r"\\(.)")

_CHILD_COMBINATOR = " > "


# ---------------------------------------------------------------------------
# Locator
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Locator:
    """フレームワークに渡す要素ロケータ。

    Attributes:
        strategy: "css" または "xpath"
        value: セレクタ文字列
    """

    strategy: str
    value: str

    @property
    def is_xpath(self) -> bool:
        return self.strategy == "xpath"


def translate_selector(selector: str, framework: Framework) -> Locator:
    """記録時のセレクタを出力先フレームワーク向けに翻訳する。

    tag:contains("text") 以外のセレクタはそのまま CSS として扱う。

    - Playwright: tag:has-text("text")
    - Puppeteer: tag::-p-text("text")
    - Selenium: XPath に変換
    - Cypress: jQuery 互換のためそのまま

    Args:
        selector: 記録時のセレクタ
        framework: 出力先フレームワーク

    Returns:
        翻訳済みの Locator
    """
    parts = selector.split(_CHILD_COMBINATOR)
    if not any(_CONTAINS_PATTERN.match(part) for part in parts):
        return Locator("css", selector)

    framework = Framework(framework)
    if framework is Framework.SELENIUM:
        return Locator("xpath", _to_xpath(parts))
    if framework is Framework.CYPRESS:
        return Locator("css", selector)

    suffix = ":has-text" if framework is Framework.PLAYWRIGHT else "::-p-text"
    translated = []
    for part in parts:
        match = _CONTAINS_PATTERN.match(part)
        if match:
            part = f'{match.group(1)}{suffix}("{match.group(2)}")'
        translated.append(part)
    return Locator("css", _CHILD_COMBINATOR.join(translated))


def _to_xpath(parts: list[str]) -> str:
    """子結合子で連結された単純セレクタ列を XPath に変換する。"""
    steps = []
    for index, part in enumerate(parts):
        prefix = "//" if index == 0 else "/"
        steps.append(prefix + _xpath_step(part))
    return "".join(steps)


def _xpath_step(part: str) -> str:
    match = _CONTAINS_PATTERN.match(part)
    if match:
        text = _unescape(match.group(2))
        return f"{match.group(1)}[contains(normalize-space(.), {xpath_literal(text)})]"

    match = _NTH_CHILD_PATTERN.match(part)
    if match:
        return f"*[{match.group(2)}][self::{match.group(1)}]"

    match = _ATTRIBUTE_PATTERN.match(part)
    if match:
        return f"*[@{match.group(1)}={xpath_literal(_unescape(match.group(2)))}]"

    if part.startswith("#"):
        return f"*[@id={xpath_literal(part[1:])}]"

    if part.startswith("."):
        token = xpath_literal(f" {part[1:]} ")
        return f'*[contains(concat(" ", normalize-space(@class), " "), {token})]'

    return part


def xpath_literal(text: str) -> str:
    """XPath 1.0 の文字列リテラルを返す。両方の引用符を含む場合は concat() を使う。"""
    if '"' not in text:
        return f'"{text}"'
    if "'" not in text:
        return f"'{text}'"
    pieces = text.split('"')
    joined = ", '\"', ".join(f'"{piece}"' for piece in pieces)
    return f"concat({joined})"


def _unescape(value: str) -> str:
    return _UNESCAPE_PATTERN.sub(r"\1", value)


# ---------------------------------------------------------------------------
# ステートメント
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NavigateOp:
    """URL へ遷移し、読み込み完了と DOM 準備完了を待つ。"""

    kind: ClassVar[str] = "navigate"
    step: int
    action: str
    url: str


@dataclass(frozen=True)
class ClickOp:
    """セレクタを待機してクリックし、短く待つ。"""

    kind: ClassVar[str] = "click"
    step: int
    action: str
    selector: str
    locator: Locator


@dataclass(frozen=True)
class FillOp:
    """セレクタを待機して値を設定する。

    secret が True の場合、text は出力されず実行時設定の値を使う。
    """

    kind: ClassVar[str] = "fill"
    step: int
    action: str
    selector: str
    locator: Locator
    text: str
    secret: bool = False


@dataclass(frozen=True)
class ScrollOp:
    """ページを絶対座標へスクロールし、短く待つ。"""

    kind: ClassVar[str] = "scroll"
    step: int
    action: str
    x: int
    y: int


@dataclass(frozen=True)
class SubmitOp:
    """フォームを送信し、遷移の完了を待つ。"""

    kind: ClassVar[str] = "submit"
    step: int
    action: str
    selector: str
    locator: Locator
    is_form: bool


@dataclass(frozen=True)
class PressOp:
    """フォーカス中の要素で制御キーを押す。"""

    kind: ClassVar[str] = "press"
    step: int
    action: str
    key: str


@dataclass(frozen=True)
class WaitOp:
    kind: ClassVar[str] = "wait"
    step: int
    action: str
    selector: str
    locator: Locator
    timeout_ms: int


@dataclass(frozen=True)
class UnsupportedOp:
    """未対応の操作。生成コードにはマーカーコメントとして残す。"""

    kind: ClassVar[str] = "unsupported"
    step: int
    action: str


Op = Union[NavigateOp, ClickOp, FillOp, ScrollOp, SubmitOp, PressOp, WaitOp, UnsupportedOp]


# ---------------------------------------------------------------------------
# コンパイル
# ---------------------------------------------------------------------------

def compile_trace(trace: InteractionTrace, framework: Framework) -> list[Op]:
    """トレースを Op 列へ変換する。

    並べ替え・統合・最適化は行わず、Interaction と Op は1対1に対応する。

    Args:
        trace: 対象トレース
        framework: 出力先フレームワーク（セレクタ翻訳に使用）

    Returns:
        Interaction と同数・同順の Op 列
    """
    framework = Framework(framework)
    return [
        _compile_one(interaction, index + 1, framework)
        for index, interaction in enumerate(trace.interactions)
    ]


def _compile_one(interaction, step: int, framework: Framework) -> Op:
    action = interaction.action

    if isinstance(interaction, NavigationInteraction):
        return NavigateOp(step=step, action=action, url=interaction.url)

    if isinstance(interaction, ClickInteraction):
        return ClickOp(
            step=step,
            action=action,
            selector=interaction.selector,
            locator=translate_selector(interaction.selector, framework),
        )

    if isinstance(interaction, TypeInteraction):
        secret = interaction.is_password or interaction.text == PASSWORD_SENTINEL
        return FillOp(
            step=step,
            action=action,
            selector=interaction.selector,
            locator=translate_selector(interaction.selector, framework),
            text="" if secret else interaction.text,
            secret=secret,
        )

    if isinstance(interaction, ScrollInteraction):
        return ScrollOp(step=step, action=action, x=interaction.x, y=interaction.y)

    if isinstance(interaction, SubmitInteraction):
        return SubmitOp(
            step=step,
            action=action,
            selector=interaction.selector,
            locator=translate_selector(interaction.selector, framework),
            is_form=interaction.elementTag == "form",
        )

    if isinstance(interaction, KeyPressInteraction):
        return PressOp(step=step, action=action, key=interaction.key)

    if isinstance(interaction, WaitInteraction):
        return WaitOp(
            step=step,
            action=action,
            selector=interaction.selector,
            locator=translate_selector(interaction.selector, framework),
            timeout_ms=interaction.timeoutMs,
        )

    return UnsupportedOp(step=step, action=action)

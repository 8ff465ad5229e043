"""
セレクタリゾルバ — DOM 要素から再実行用セレクタ文字列を生成

記録時の要素情報だけを使い、同じページを新しく読み込んだときにも
要素を特定できる可能性が高いセレクタを優先順位チェーンで選ぶ。
ドキュメントへの問い合わせ（一意性確認）は行わない。

優先順位（最初に一致したものを採用、後戻りなし）:
  1. id 属性 → #id
  2. data-testid 属性 → [data-testid="..."]
  3. name 属性 → [name="..."]
  4. 意味のある最初のクラス（_ で始まらず3文字以上）→ .class
  5. aria-label 属性 → [aria-label="..."]
  6. placeholder 属性 → [placeholder="..."]
  7. button / a で50文字未満のテキスト → tag:contains("text")
  8. 親セレクタ + " > tag:nth-child(n)"（親がなければタグ名のみ）
"""

from __future__ import annotations

import logging
from typing import Optional

from .dom import ElementNode

logger = logging.getLogger(__name__)

# テキストセレクタを採用する最大文字数（この値未満）
_MAX_TEXT_LENGTH = 50

# テキストセレクタの対象タグ
_TEXT_TAGS = ("button", "a")


def resolve_selector(element: Optional[ElementNode]) -> str:
    """要素を特定するセレクタ文字列を返す。

    例外は送出しない。最悪の場合でもタグ名のみ、
    document ノードの場合は "document" を返す。

    Args:
        element: 対象要素

    Returns:
        セレクタ文字列
    """
    if element is None or element.is_document:
        return "document"

    if element.id:
        return f"#{element.id}"

    test_id = element.get("data-testid")
    if test_id:
        return _attribute_selector("data-testid", test_id)

    name = element.get("name")
    if name:
        return _attribute_selector("name", name)

    css_class = _first_meaningful_class(element.class_name)
    if css_class:
        return f".{css_class}"

    aria_label = element.get("aria-label")
    if aria_label:
        return _attribute_selector("aria-label", aria_label)

    placeholder = element.get("placeholder")
    if placeholder:
        return _attribute_selector("placeholder", placeholder)

    tag = element.tag_name
    if tag in _TEXT_TAGS:
        text = element.text.strip()
        if text and len(text) < _MAX_TEXT_LENGTH:
            return f'{tag}:contains("{_escape(text)}")'

    # nth-child フォールバック
    if element.parent is not None and not element.parent.is_document:
        parent_selector = resolve_selector(element.parent)
        return f"{parent_selector} > {tag}:nth-child({element.position()})"

    return tag


# ---------------------------------------------------------------------------
# ヘルパー関数
# ---------------------------------------------------------------------------

def _first_meaningful_class(class_name: str) -> str:
    """_ で始まらず3文字以上の最初のクラス名を返す。該当なしは空文字列。"""
    for token in class_name.split():
        if not token.startswith("_") and len(token) > 2:
            return token
    return ""


def _attribute_selector(name: str, value: str) -> str:
    return f'[{name}="{_escape(value)}"]'


def _escape(value: str) -> str:
    """CSS 文字列リテラル用にエスケープする。"""
    return value.replace("\\", "\\\\").replace('"', '\\"')

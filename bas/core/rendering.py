"""
テンプレートレンダラー — Jinja2 環境の構築とコード生成用フィルタ

生成スクリプト・API スキャフォールド・ドキュメントは全て
templates/ 配下の Jinja2 テンプレートから出力する。
キャプチャした文字列はフィルタ経由でのみ埋め込み、
引用符の未エスケープによる壊れたコードを生成しない。

フィルタ:
  - js: JavaScript 文字列/値リテラル
  - py: Python 値リテラル
  - comment: 1行コメント用に改行を除去
"""

from __future__ import annotations

import json
import logging
import re
from functools import lru_cache
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

logger = logging.getLogger(__name__)

# テンプレートディレクトリのパス
_TEMPLATES_DIR = Path(__file__).parent.parent / "templates"

_WHITESPACE = re.compile(r"\s+")


# ---------------------------------------------------------------------------
# フィルタ
# ---------------------------------------------------------------------------

def js_literal(value: Any) -> str:
    """値を JavaScript リテラルとして返す。"""
    return json.dumps(value, ensure_ascii=False)


def py_literal(value: Any) -> str:
    """値を Python リテラルとして返す。"""
    if value is None or isinstance(value, bool):
        return repr(value)
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(py_literal(v) for v in value) + "]"
    if isinstance(value, dict):
        items = ", ".join(f"{py_literal(k)}: {py_literal(v)}" for k, v in value.items())
        return "{" + items + "}"
    return json.dumps(str(value), ensure_ascii=False)


def single_line(value: Any) -> str:
    """改行や連続空白を1つの空白にまとめる（コメント埋め込み用）。"""
    return _WHITESPACE.sub(" ", str(value)).strip()


# ---------------------------------------------------------------------------
# 環境
# ---------------------------------------------------------------------------

@lru_cache(maxsize=1)
def get_environment() -> Environment:
    """共有の Jinja2 環境を返す。"""
    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )
    env.filters["js"] = js_literal
    env.filters["py"] = py_literal
    env.filters["comment"] = single_line
    return env


def render(template_name: str, **context: Any) -> str:
    """テンプレートを描画する。

    Args:
        template_name: templates/ からの相対パス
        **context: テンプレート変数

    Returns:
        描画結果の文字列
    """
    template = get_environment().get_template(template_name)
    logger.debug("テンプレートを描画: %s", template_name)
    return template.render(**context)

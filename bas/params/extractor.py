"""
パラメータ抽出 — トレースから API パラメータ一覧を導出

navigation の URL クエリと type 操作の入力値から型付きパラメータを作り、
実行時設定パラメータ（headless / timeoutMs）を末尾に追加したうえで
名前の重複を先勝ちで除去する。

既知の制約: 異なるステップで同じフィールド名が導出された場合、
後のパラメータは統合もリネームもされず破棄される。
"""

from __future__ import annotations

import logging
import math
import re
from typing import Iterable, Optional
from urllib.parse import parse_qsl, urlsplit

from ..trace.schema import (
    PASSWORD_SENTINEL,
    InteractionTrace,
    NavigationInteraction,
    Parameter,
    ParameterType,
    TypeInteraction,
)

logger = logging.getLogger(__name__)

# フィールド名を導出できない場合の汎用名
GENERIC_FIELD_NAME = "field"

# timeoutMs パラメータの既定値（ミリ秒）
DEFAULT_TIMEOUT_MS = 30000

_NAME_PATTERN = re.compile(r'name="([^"]+)"')
_ID_PATTERN = re.compile(r'id="([^"]+)"')
_HASH_ID_PATTERN = re.compile(r"^#([A-Za-z_][\w-]*)")

_BOOLEAN_LITERALS = ("true", "false")


def extract_parameters(
    trace: InteractionTrace,
    timeout_ms: int = DEFAULT_TIMEOUT_MS,
) -> list[Parameter]:
    """トレースから重複のないパラメータ一覧を抽出する。

    Args:
        trace: 対象トレース（変更しない）
        timeout_ms: timeoutMs パラメータの既定値

    Returns:
        出現順のパラメータ一覧。末尾に headless / timeoutMs を含む。
    """
    parameters: list[Parameter] = []

    for interaction in trace.interactions:
        if isinstance(interaction, NavigationInteraction):
            parameters.extend(_query_parameters(interaction.url))
        elif isinstance(interaction, TypeInteraction):
            param = _input_parameter(interaction)
            if param is not None:
                parameters.append(param)

    parameters.extend(runtime_parameters(timeout_ms))
    return deduplicate(parameters)


def runtime_parameters(timeout_ms: int = DEFAULT_TIMEOUT_MS) -> list[Parameter]:
    """常に付与される実行時設定パラメータを返す。"""
    return [
        Parameter(
            name="headless",
            type="boolean",
            description="ヘッドレスモードでブラウザを実行する",
            exampleValue=True,
            required=False,
            defaultValue=True,
        ),
        Parameter(
            name="timeoutMs",
            type="integer",
            description="最大タイムアウト（ミリ秒）",
            exampleValue=timeout_ms,
            required=False,
            defaultValue=timeout_ms,
        ),
    ]


def deduplicate(parameters: Iterable[Parameter]) -> list[Parameter]:
    """名前の重複を除去する。最初に出現したものを残す。"""
    seen: set[str] = set()
    result: list[Parameter] = []
    for param in parameters:
        if param.name in seen:
            logger.debug("重複パラメータを破棄: %s", param.name)
            continue
        seen.add(param.name)
        result.append(param)
    return result


def extract_field_name(selector: str) -> str:
    """セレクタ文字列からフィールド名を導出する。

    name="..." を最優先し、次に id="..."、最後に先頭の #id を使う。
    いずれもなければ汎用名 "field" を返す。
    """
    for pattern in (_NAME_PATTERN, _ID_PATTERN, _HASH_ID_PATTERN):
        match = pattern.search(selector)
        if match:
            return match.group(1)
    return GENERIC_FIELD_NAME


def infer_parameter_type(value: str) -> ParameterType:
    """入力値から型を推論する。

    真偽値リテラル → boolean、数値として解釈可能 → number、
    @ を含む → email、それ以外 → string。
    """
    stripped = value.strip()
    if stripped.lower() in _BOOLEAN_LITERALS:
        return "boolean"
    if _is_numeric(stripped):
        return "number"
    if "@" in value:
        return "email"
    return "string"


# ---------------------------------------------------------------------------
# 内部処理
# ---------------------------------------------------------------------------

def _query_parameters(url: str) -> list[Parameter]:
    """URL のクエリ文字列からパラメータを作る。不正な URL は無視する。"""
    try:
        query = urlsplit(url).query
        pairs = parse_qsl(query, keep_blank_values=True)
    except ValueError as exc:
        logger.debug("URL を解析できないためスキップ: %s (%s)", url, exc)
        return []

    return [
        Parameter(
            name=key,
            type="string",
            description="ナビゲーション URL のクエリパラメータ",
            exampleValue=value,
            required=False,
        )
        for key, value in pairs
    ]


def _input_parameter(interaction: TypeInteraction) -> Optional[Parameter]:
    text = interaction.text
    if not text or text == PASSWORD_SENTINEL:
        return None
    return Parameter(
        name=extract_field_name(interaction.selector),
        type=infer_parameter_type(text),
        description=f"入力フィールド: {interaction.selector}",
        exampleValue=text,
        required=True,
        sensitive=interaction.is_password,
    )


def _is_numeric(value: str) -> bool:
    if not value or "_" in value:
        return False
    try:
        number = float(value)
    except ValueError:
        return False
    return not math.isnan(number)

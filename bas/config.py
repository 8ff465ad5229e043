"""
スタジオ設定 — 環境変数・CLI 引数からの設定読み込み

CLI 引数 > 環境変数 > デフォルト値 の優先順位で適用される。
不正な値は警告ログを出してデフォルト値を維持する。

環境変数一覧:
  BAS_HEADLESS        : 記録ブラウザのヘッドレス実行（true/false, デフォルト: false）
  BAS_TIMEOUT_MS      : 生成スクリプトの既定タイムアウト（デフォルト: 30000）
  BAS_VIEWPORT_WIDTH  : ビューポート幅（デフォルト: 1280）
  BAS_VIEWPORT_HEIGHT : ビューポート高さ（デフォルト: 720）
  BAS_AI_MODELS       : 試行するモデル名のカンマ区切り
  BAS_AI_TIMEOUT      : AI 呼び出し1回のタイムアウト秒（デフォルト: 60）
  BAS_AI_CACHE_SIZE   : AI 応答キャッシュの最大件数（デフォルト: 100）
  BAS_OUTPUT_DIR      : 成果物ディレクトリ（デフォルト: output）
  BAS_API_BASE_URL    : 生成 API のベース URL（デフォルト: http://localhost:3000）
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional

from .ai.client import DEFAULT_MODELS

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# 環境変数キー定数
# ---------------------------------------------------------------------------

_ENV_HEADLESS = "BAS_HEADLESS"
_ENV_TIMEOUT_MS = "BAS_TIMEOUT_MS"
_ENV_VIEWPORT_WIDTH = "BAS_VIEWPORT_WIDTH"
_ENV_VIEWPORT_HEIGHT = "BAS_VIEWPORT_HEIGHT"
_ENV_AI_MODELS = "BAS_AI_MODELS"
_ENV_AI_TIMEOUT = "BAS_AI_TIMEOUT"
_ENV_AI_CACHE_SIZE = "BAS_AI_CACHE_SIZE"
_ENV_OUTPUT_DIR = "BAS_OUTPUT_DIR"
_ENV_API_BASE_URL = "BAS_API_BASE_URL"


# ---------------------------------------------------------------------------
# 設定データクラス
# ---------------------------------------------------------------------------

@dataclass
class StudioConfig:
    """実行時設定。

    Attributes:
        headless: 記録ブラウザをヘッドレスで起動するか
        timeout_ms: 生成スクリプトの既定タイムアウト（ミリ秒）
        viewport_width: ビューポート幅
        viewport_height: ビューポート高さ
        ai_models: 試行するモデル名（先頭から順）
        ai_timeout: AI 呼び出し1回のタイムアウト（秒）
        ai_cache_size: AI 応答キャッシュの最大件数
        output_dir: 成果物ディレクトリ
        api_base_url: 生成 API のベース URL
    """

    headless: bool = False
    timeout_ms: int = 30000
    viewport_width: int = 1280
    viewport_height: int = 720
    ai_models: tuple[str, ...] = field(default_factory=lambda: DEFAULT_MODELS)
    ai_timeout: float = 60.0
    ai_cache_size: int = 100
    output_dir: str = "output"
    api_base_url: str = "http://localhost:3000"

    @property
    def viewport(self) -> tuple[int, int]:
        return (self.viewport_width, self.viewport_height)


# ---------------------------------------------------------------------------
# 環境変数からの読み込み
# ---------------------------------------------------------------------------

def _parse_bool(value: str) -> bool:
    """文字列を bool に変換する。

    Args:
        value: "true", "1", "yes" → True、それ以外 → False

    Returns:
        変換結果
    """
    return value.strip().lower() in ("true", "1", "yes")


def _parse_positive(
    env: Mapping[str, str],
    key: str,
    convert: Callable[[str], float],
) -> Optional[float]:
    """正の数値を読み込む。不正な値は警告ログを出して None を返す。"""
    raw = env[key]
    try:
        value = convert(raw)
    except ValueError:
        logger.warning("%s の値が不正です: %s", key, raw)
        return None
    if value <= 0:
        logger.warning("%s は正の値である必要があります: %s", key, raw)
        return None
    return value


def load_config_from_env(env: Optional[Mapping[str, str]] = None) -> StudioConfig:
    """環境変数から StudioConfig を生成する。

    設定されていない環境変数はデフォルト値を使用する。

    Args:
        env: 読み込み元。None の場合は os.environ

    Returns:
        環境変数から読み込んだ設定
    """
    env = os.environ if env is None else env
    config = StudioConfig()

    if _ENV_HEADLESS in env:
        config.headless = _parse_bool(env[_ENV_HEADLESS])

    if _ENV_TIMEOUT_MS in env:
        value = _parse_positive(env, _ENV_TIMEOUT_MS, int)
        if value is not None:
            config.timeout_ms = int(value)

    if _ENV_VIEWPORT_WIDTH in env:
        value = _parse_positive(env, _ENV_VIEWPORT_WIDTH, int)
        if value is not None:
            config.viewport_width = int(value)

    if _ENV_VIEWPORT_HEIGHT in env:
        value = _parse_positive(env, _ENV_VIEWPORT_HEIGHT, int)
        if value is not None:
            config.viewport_height = int(value)

    if _ENV_AI_MODELS in env:
        models = tuple(m.strip() for m in env[_ENV_AI_MODELS].split(",") if m.strip())
        if models:
            config.ai_models = models
        else:
            logger.warning("%s にモデルが指定されていません", _ENV_AI_MODELS)

    if _ENV_AI_TIMEOUT in env:
        value = _parse_positive(env, _ENV_AI_TIMEOUT, float)
        if value is not None:
            config.ai_timeout = float(value)

    if _ENV_AI_CACHE_SIZE in env:
        raw = env[_ENV_AI_CACHE_SIZE]
        try:
            size = int(raw)
        except ValueError:
            logger.warning("%s の値が不正です: %s", _ENV_AI_CACHE_SIZE, raw)
        else:
            if size >= 0:
                config.ai_cache_size = size
            else:
                logger.warning("%s は0以上である必要があります: %s", _ENV_AI_CACHE_SIZE, raw)

    if _ENV_OUTPUT_DIR in env:
        config.output_dir = env[_ENV_OUTPUT_DIR]

    if _ENV_API_BASE_URL in env:
        config.api_base_url = env[_ENV_API_BASE_URL]

    return config

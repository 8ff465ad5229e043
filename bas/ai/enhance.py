"""
ScriptEnhancer — 基本スクリプトを AI で改善する外部協調者

基本スクリプトとトレースを受け取り、改善版スクリプトを返す。
モデルを順に試し、全て失敗した場合は EnhancementError を送出する。
呼び出し側（ScriptSynthesizer.build_package）はこのエラーを受けて
基本スクリプトをそのまま採用する。

主な機能:
  - ResponseCache: 操作列をキーとする LRU レスポンスキャッシュ
  - ScriptEnhancer.enhance(): モデルフォールバック付きの改善処理
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import re
from collections import OrderedDict
from typing import Any, Optional, Sequence

from ..trace.schema import InteractionTrace, SessionMetadata
from .client import DEFAULT_MODELS, DEFAULT_TIMEOUT, LlmClient, ModelRotation, call_llm
from .prompts import SYSTEM_PROMPT, build_enhancement_prompt

logger = logging.getLogger(__name__)

DEFAULT_CACHE_SIZE = 100

_CODE_BLOCK = re.compile(r"```(?:javascript|js)?[ \t]*\n(.*?)```", re.DOTALL)


# ---------------------------------------------------------------------------
# エラー定義
# ---------------------------------------------------------------------------

class EnhancementError(RuntimeError):
    """全てのモデルでスクリプト改善に失敗した場合のエラー。"""


# ---------------------------------------------------------------------------
# レスポンスキャッシュ
# ---------------------------------------------------------------------------

class ResponseCache:
    """最大件数を超えると最も古く使われたエントリを破棄するキャッシュ。"""

    def __init__(self, max_size: int = DEFAULT_CACHE_SIZE) -> None:
        self._max_size = max(0, max_size)
        self._entries: OrderedDict[str, str] = OrderedDict()

    def get(self, key: str) -> Optional[str]:
        if key not in self._entries:
            return None
        self._entries.move_to_end(key)
        return self._entries[key]

    def put(self, key: str, value: str) -> None:
        if self._max_size == 0:
            return
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("キャッシュから破棄: %s", evicted)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries


def cache_key(trace: InteractionTrace) -> str:
    """操作列の action / selector / url / 入力値からキャッシュキーを作る。

    タイムスタンプは含めない。password の入力値はセンチネルのまま含まれる。
    """
    simplified = [
        {
            "action": i.action,
            "selector": getattr(i, "selector", None),
            "url": getattr(i, "url", None),
            "text": getattr(i, "text", None),
        }
        for i in trace.interactions
    ]
    payload = json.dumps(simplified, ensure_ascii=False, sort_keys=True)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def extract_code(response: str) -> str:
    """応答にコードブロックがあればその中身を、なければ応答全体を返す。"""
    match = _CODE_BLOCK.search(response)
    if match:
        return match.group(1).strip() + "\n"
    return response.strip() + "\n"


# ---------------------------------------------------------------------------
# ScriptEnhancer 本体
# ---------------------------------------------------------------------------

class ScriptEnhancer:
    """AI によるスクリプト改善の協調者。

    使用例::

        enhancer = ScriptEnhancer(OpenAiLlmClient())
        enhanced = await enhancer.enhance(basic_script, trace, metadata)
    """

    def __init__(
        self,
        llm_client: Optional[LlmClient] = None,
        models: Sequence[str] = DEFAULT_MODELS,
        cache_size: int = DEFAULT_CACHE_SIZE,
        timeout: float = DEFAULT_TIMEOUT,
        rotation: Optional[ModelRotation] = None,
    ) -> None:
        """ScriptEnhancer を初期化する。

        Args:
            llm_client: LLM クライアント。None の場合は常に EnhancementError
            models: 試行するモデル名（先頭から順）
            cache_size: キャッシュの最大件数
            timeout: 1回の呼び出しのタイムアウト（秒）
            rotation: 他の協調者と共有するモデルローテーション
        """
        self._llm = llm_client
        self._rotation = rotation or ModelRotation(models)
        self._cache = ResponseCache(cache_size)
        self._timeout = timeout

    @property
    def rotation(self) -> ModelRotation:
        return self._rotation

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    async def enhance(
        self,
        basic_script: str,
        trace: InteractionTrace,
        metadata: Optional[SessionMetadata] = None,
    ) -> str:
        """基本スクリプトの改善版を返す。

        Args:
            basic_script: 合成済みの基本 Playwright スクリプト
            trace: 元のトレース（変更しない）
            metadata: 記録セッションの付随情報

        Returns:
            改善版スクリプト

        Raises:
            EnhancementError: クライアント未設定、または全モデルが失敗した場合
        """
        if self._llm is None:
            raise EnhancementError("LLM クライアントが設定されていません")

        key = cache_key(trace)
        cached = self._cache.get(key)
        if cached is not None:
            logger.info("キャッシュ済みの改善結果を返します")
            return cached

        prompt = build_enhancement_prompt(basic_script, trace, metadata)

        errors: list[str] = []
        for _ in range(len(self._rotation)):
            model = self._rotation.current
            logger.info("スクリプト改善を試行: model=%s", model)
            try:
                response = await call_llm(
                    self._llm, SYSTEM_PROMPT, prompt, model=model, timeout=self._timeout
                )
            except asyncio.TimeoutError:
                errors.append(f"{model}: タイムアウト")
                logger.warning("モデル %s がタイムアウトしました", model)
                self._rotation.advance()
                continue
            except Exception as exc:
                errors.append(f"{model}: {exc}")
                logger.warning("モデル %s が失敗しました: %s", model, exc)
                self._rotation.advance()
                continue

            if not response.strip():
                errors.append(f"{model}: 空の応答")
                logger.warning("モデル %s の応答が空でした", model)
                self._rotation.advance()
                continue

            enhanced = extract_code(response)
            self._cache.put(key, enhanced)
            return enhanced

        raise EnhancementError("全てのモデルで改善に失敗しました: " + "; ".join(errors))

    def stats(self) -> dict[str, Any]:
        """現在のモデルとキャッシュ状況を返す。"""
        return {
            "currentModel": self._rotation.current,
            "cacheSize": len(self._cache),
            "availableModels": list(self._rotation.models),
        }

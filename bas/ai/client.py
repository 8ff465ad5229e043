"""
LLM クライアント — AI 連携の抽象インターフェースと OpenAI 実装

LLM クライアントを Protocol で抽象化し、テスト時にはスタブを注入可能にする。
複数モデルを順に試すためのローテーションもここで管理する。

主な機能:
  - LlmClient: generate() を持つクライアントの Protocol
  - OpenAiLlmClient: openai SDK（Chat Completions）による実装
  - ModelRotation: 失敗時に次のモデルへ切り替える順序付きリスト
  - call_llm(): 同期クライアントをスレッドで実行しタイムアウトを適用する
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional, Protocol, Sequence, runtime_checkable

logger = logging.getLogger(__name__)

DEFAULT_MODELS: tuple[str, ...] = ("gemini-2.5-flash", "gpt-4.1-mini", "gpt-4.1-nano")
"""既定のモデル順。先頭が主モデル、以降がフォールバック。"""

DEFAULT_TIMEOUT = 60.0


# ---------------------------------------------------------------------------
# LLM クライアント Protocol
# ---------------------------------------------------------------------------

@runtime_checkable
class LlmClient(Protocol):
    """LLM クライアントの抽象インターフェース。

    テスト時にスタブやモックを注入するための Protocol 定義。
    """

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str,
        max_tokens: int = 2500,
        temperature: float = 0.3,
    ) -> str:
        """LLM にプロンプトを送信し、テキストレスポンスを返す。

        Args:
            system_prompt: システムプロンプト
            user_prompt: ユーザープロンプト
            model: 使用するモデル名
            max_tokens: 最大トークン数
            temperature: 温度パラメータ

        Returns:
            LLM のテキストレスポンス
        """
        ...


# ---------------------------------------------------------------------------
# OpenAI 実装
# ---------------------------------------------------------------------------

class OpenAiLlmClient:
    """openai SDK を使用する LLM クライアント。

    OpenAI 互換 API であれば base_url の指定で他プロバイダにも接続できる。
    openai パッケージは ai extra でインストールする。
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        top_p: float = 0.9,
    ) -> None:
        from openai import OpenAI

        self._client = OpenAI(api_key=api_key, base_url=base_url)
        self._top_p = top_p

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        model: str,
        max_tokens: int = 2500,
        temperature: float = 0.3,
    ) -> str:
        response = self._client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens=max_tokens,
            temperature=temperature,
            top_p=self._top_p,
        )
        return response.choices[0].message.content or ""


# ---------------------------------------------------------------------------
# モデルローテーション
# ---------------------------------------------------------------------------

class ModelRotation:
    """失敗したモデルの次へ切り替える循環リスト。

    現在位置は呼び出しをまたいで保持され、成功したモデルが次回も先頭になる。
    """

    def __init__(self, models: Sequence[str] = DEFAULT_MODELS) -> None:
        if not models:
            raise ValueError("モデルを1つ以上指定してください")
        self._models = tuple(models)
        self._index = 0

    @property
    def models(self) -> tuple[str, ...]:
        return self._models

    @property
    def current(self) -> str:
        """現在のモデル名を返す。"""
        return self._models[self._index]

    def advance(self) -> str:
        """次のモデルへ切り替え、その名前を返す。"""
        self._index = (self._index + 1) % len(self._models)
        return self.current

    def __len__(self) -> int:
        return len(self._models)


# ---------------------------------------------------------------------------
# 非同期呼び出し
# ---------------------------------------------------------------------------

async def call_llm(
    client: LlmClient,
    system_prompt: str,
    user_prompt: str,
    *,
    model: str,
    timeout: float = DEFAULT_TIMEOUT,
    **options: Any,
) -> str:
    """同期 LLM クライアントをワーカースレッドで呼び出す。

    Raises:
        asyncio.TimeoutError: timeout 秒以内に応答がない場合
    """
    logger.debug("LLM 呼び出し: model=%s", model)
    return await asyncio.wait_for(
        asyncio.to_thread(
            client.generate, system_prompt, user_prompt, model=model, **options
        ),
        timeout=timeout,
    )

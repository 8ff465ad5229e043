"""
プロンプト定義 — AI 連携で使用するシステム/ユーザープロンプト
"""

from __future__ import annotations

import json
from typing import Optional

from ..trace.schema import InteractionTrace, SessionMetadata

SYSTEM_PROMPT = (
    "あなたは Playwright と Web スクレイピングを専門とするブラウザ自動化エンジニアです。"
    "包括的なエラーハンドリングを備えた、本番運用可能なクリーンなコードを出力してください。"
)

ENHANCE_USER_TEMPLATE = """\
以下のユーザー操作と Playwright スクリプトを分析し、本番運用可能な改善版を作成してください。

## 記録コンテキスト
- 操作数: {count}
- 記録時間: {duration}
- 対象サイト: {url}

## 記録された操作
{interactions}

## 生成済み Playwright スクリプト
```javascript
{script}
```

## 改善要件
1. 例外処理とリカバリの追加
2. セレクタのフォールバック戦略（ID → data-testid → class → テキスト）
3. 動的コンテンツに対する待機戦略
4. 速度と安定性の最適化
5. 再利用しやすい構造
6. 機密データの適切な扱い（パスワードは config.password から渡す）
7. デバッグ用ログ
8. 引数による設定

JavaScript コードのみを出力してください。"""

ANALYSIS_USER_TEMPLATE = """\
以下のブラウザ操作を分析してください。

## 操作
{interactions}

## 分析内容
1. 主なワークフロー
2. 壊れやすい箇所や潜在的な問題
3. 最適化の提案
4. 追加すべきエラーハンドリング
5. セキュリティ上の考慮事項

次の構造の JSON のみを出力してください:
{{
  "workflow": "主な処理の説明",
  "issues": ["潜在的な問題"],
  "optimizations": ["最適化の提案"],
  "security": ["セキュリティ上の考慮事項"],
  "complexity": "low|medium|high"
}}"""

DOCS_USER_TEMPLATE = """\
以下のブラウザ自動化スクリプトの API ドキュメントを作成してください。

## スクリプト
```javascript
{script}
```

## 記録された操作（先頭のみ）
{interactions}

## 記載内容
1. 関数の説明
2. パラメータと型
3. 戻り値
4. 使用例
5. エラーハンドリング
6. 設定オプション

Markdown 形式で出力してください。"""

# プロンプトに含める操作数の上限
ENHANCE_INTERACTION_LIMIT = 10
DOCS_INTERACTION_LIMIT = 5


def dump_interactions(trace: InteractionTrace, limit: Optional[int] = None) -> str:
    """操作列をプロンプト用の JSON 文字列にする。limit を超える分は省略する。"""
    items = trace.interactions if limit is None else trace.interactions[:limit]
    text = json.dumps(
        [i.model_dump(mode="json") for i in items], ensure_ascii=False, indent=2
    )
    if limit is not None and len(trace) > limit:
        text += "\n... (省略)"
    return text


def build_enhancement_prompt(
    basic_script: str,
    trace: InteractionTrace,
    metadata: Optional[SessionMetadata] = None,
) -> str:
    metadata = metadata or SessionMetadata()
    duration = f"{metadata.durationMs}ms" if metadata.durationMs is not None else "不明"
    return ENHANCE_USER_TEMPLATE.format(
        count=len(trace),
        duration=duration,
        url=metadata.url or trace.start_url or "不明",
        interactions=dump_interactions(trace, ENHANCE_INTERACTION_LIMIT),
        script=basic_script,
    )


def build_analysis_prompt(trace: InteractionTrace) -> str:
    return ANALYSIS_USER_TEMPLATE.format(interactions=dump_interactions(trace))


def build_documentation_prompt(script: str, trace: InteractionTrace) -> str:
    return DOCS_USER_TEMPLATE.format(
        script=script,
        interactions=dump_interactions(trace, DOCS_INTERACTION_LIMIT),
    )

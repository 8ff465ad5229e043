"""
セキュリティ分類 — トレースの粗いセキュリティ特性を判定

password 入力と submit 操作の有無だけを見る参考情報であり、
スクリプト合成を妨げることはない。
"""

from __future__ import annotations

from ..trace.schema import (
    InteractionTrace,
    SecuritySummary,
    SubmitInteraction,
    TypeInteraction,
)

AUTH_RECOMMENDATIONS = (
    "機密データは環境変数で渡してください",
    "適切な認証を実装してください",
)

DEFAULT_RECOMMENDATIONS = (
    "レート制限を検討してください",
    "入力パラメータを検証してください",
)


def classify_security(trace: InteractionTrace) -> SecuritySummary:
    """トレースのセキュリティ分類を返す。

    Args:
        trace: 対象トレース

    Returns:
        requiresAuth / hasFormSubmission / sensitiveData と推奨事項
    """
    has_password = any(
        isinstance(i, TypeInteraction) and i.is_password for i in trace.interactions
    )
    has_submit = any(isinstance(i, SubmitInteraction) for i in trace.interactions)

    return SecuritySummary(
        requiresAuth=has_password,
        hasFormSubmission=has_submit,
        sensitiveData=has_password,
        recommendations=AUTH_RECOMMENDATIONS if has_password else DEFAULT_RECOMMENDATIONS,
    )


def count_password_fields(trace: InteractionTrace) -> int:
    """password 入力の操作数を返す。"""
    return sum(
        1 for i in trace.interactions if isinstance(i, TypeInteraction) and i.is_password
    )

"""
トレーススキーマ定義 — Interaction / InteractionTrace / Parameter

記録セッションが生成する操作モデルの Pydantic v2 モデルを定義する。
Interaction は action タグで判別される閉じた Union 型であり、
未知の action は UnknownInteraction として受け入れる（前方互換）。

不変条件:
  - トレース先頭は常に NavigationInteraction
  - relativeTimeMs はトレース全体で単調非減少
  - inputKind が password の TypeInteraction は必ずセンチネル値を保持する
"""

from __future__ import annotations

import enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Discriminator,
    Field,
    Tag,
    field_validator,
    model_validator,
)

# ---------------------------------------------------------------------------
# 定数
# ---------------------------------------------------------------------------

PASSWORD_SENTINEL = "[PASSWORD]"
"""password 入力の実値の代わりに記録されるセンチネル値。"""

CONTROL_KEYS: tuple[str, ...] = ("Enter", "Tab", "Escape")
"""記録対象となる制御キーの許可リスト。"""


def _is_password_kind(kind: Any) -> bool:
    return isinstance(kind, str) and kind.strip().lower() == "password"


# ---------------------------------------------------------------------------
# 合成ターゲット
# ---------------------------------------------------------------------------

class Framework(str, enum.Enum):
    """スクリプト合成の出力先フレームワーク。"""

    PLAYWRIGHT = "playwright"
    PUPPETEER = "puppeteer"
    SELENIUM = "selenium"
    CYPRESS = "cypress"


# ---------------------------------------------------------------------------
# Interaction 共通基底
# ---------------------------------------------------------------------------

class _InteractionBase(BaseModel):
    """全 Interaction 共通のフィールド。

    記録後に変更されないよう frozen とする。
    旧形式（relativeTime）のフィールド名も読み込み時に受け付ける。
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: int = Field(default=0, description="壁時計タイムスタンプ（エポックミリ秒）")
    relativeTimeMs: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("relativeTimeMs", "relativeTime"),
        description="セッション開始からの経過時間（ミリ秒）",
    )


class Coordinates(BaseModel):
    """クリック位置のビューポート座標。"""

    model_config = ConfigDict(frozen=True)

    x: int = Field(default=0, description="clientX")
    y: int = Field(default=0, description="clientY")


# ---------------------------------------------------------------------------
# Interaction 各種別
# ---------------------------------------------------------------------------

class NavigationInteraction(_InteractionBase):
    """ページ遷移（初回 URL および履歴変更）。"""

    action: Literal["navigation"] = "navigation"
    url: str = Field(..., description="遷移先 URL")


class ClickInteraction(_InteractionBase):
    """要素のクリック。"""

    action: Literal["click"] = "click"
    selector: str = Field(..., description="クリック対象のセレクタ")
    elementTag: str = Field(
        default="",
        validation_alias=AliasChoices("elementTag", "element"),
        description="対象要素のタグ名（小文字）",
    )
    coordinates: Coordinates = Field(default_factory=Coordinates, description="クリック座標")
    textSnippet: str = Field(
        default="",
        validation_alias=AliasChoices("textSnippet", "text"),
        description="クリック時点の要素テキスト（trim 済み）",
    )


class TypeInteraction(_InteractionBase):
    """入力欄への文字入力。

    inputKind が password の場合、text は必ず PASSWORD_SENTINEL に置き換えられる。
    キャプチャ時だけでなくファイルからの読み込み時にも適用される。
    """

    action: Literal["type"] = "type"
    selector: str = Field(..., description="入力対象のセレクタ")
    elementTag: str = Field(
        default="input",
        validation_alias=AliasChoices("elementTag", "element"),
        description="対象要素のタグ名（小文字）",
    )
    text: str = Field(default="", description="入力値（password の場合はセンチネル）")
    inputKind: str = Field(
        default="text",
        validation_alias=AliasChoices("inputKind", "inputType"),
        description="input 要素の type 属性",
    )

    @model_validator(mode="before")
    @classmethod
    def _redact_password(cls, data: Any) -> Any:
        """password 入力の実値をセンチネルに置き換える。"""
        if isinstance(data, dict):
            kind = data.get("inputKind", data.get("inputType"))
            if _is_password_kind(kind) and data.get("text") != PASSWORD_SENTINEL:
                data = {**data, "text": PASSWORD_SENTINEL}
        return data

    @field_validator("inputKind")
    @classmethod
    def _normalize_kind(cls, v: str) -> str:
        # HTML の type 属性は大文字・小文字を区別しない
        return v.strip().lower() or "text"

    @property
    def is_password(self) -> bool:
        """password 入力かどうかを返す。"""
        return _is_password_kind(self.inputKind)


class ScrollInteraction(_InteractionBase):
    """ページスクロール（絶対オフセット）。"""

    action: Literal["scroll"] = "scroll"
    x: int = Field(default=0, description="window.scrollX")
    y: int = Field(default=0, description="window.scrollY")


class SubmitInteraction(_InteractionBase):
    """フォーム送信。"""

    action: Literal["submit"] = "submit"
    selector: str = Field(..., description="送信されたフォームのセレクタ")
    elementTag: str = Field(
        default="form",
        validation_alias=AliasChoices("elementTag", "element"),
        description="対象要素のタグ名（小文字）",
    )


class KeyPressInteraction(_InteractionBase):
    """制御キー（Enter / Tab / Escape）の押下。"""

    action: Literal["keypress"] = "keypress"
    key: Literal["Enter", "Tab", "Escape"] = Field(..., description="押下されたキー")
    selector: str = Field(default="document", description="フォーカス中要素のセレクタ")


class WaitInteraction(_InteractionBase):
    """要素の出現待機。"""

    action: Literal["wait"] = "wait"
    selector: str = Field(..., description="待機対象のセレクタ")
    timeoutMs: int = Field(default=15000, ge=0, description="待機タイムアウト（ミリ秒）")


class UnknownInteraction(_InteractionBase):
    """未知の action を持つ Interaction。

    新しい操作種別を含むトレースを読み込めるよう、
    追加フィールドをそのまま保持する。
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    action: str = Field(..., description="未知の操作種別")


_KNOWN_ACTIONS = frozenset(
    {"navigation", "click", "type", "scroll", "submit", "keypress", "wait"}
)


def _interaction_tag(value: Any) -> str:
    """Union 判別用のタグを返す。既知の action 以外は unknown。"""
    if isinstance(value, dict):
        action = value.get("action")
    else:
        action = getattr(value, "action", None)
    return action if action in _KNOWN_ACTIONS else "unknown"


Interaction = Annotated[
    Union[
        Annotated[NavigationInteraction, Tag("navigation")],
        Annotated[ClickInteraction, Tag("click")],
        Annotated[TypeInteraction, Tag("type")],
        Annotated[ScrollInteraction, Tag("scroll")],
        Annotated[SubmitInteraction, Tag("submit")],
        Annotated[KeyPressInteraction, Tag("keypress")],
        Annotated[WaitInteraction, Tag("wait")],
        Annotated[UnknownInteraction, Tag("unknown")],
    ],
    Discriminator(_interaction_tag),
]
"""全 Interaction 種別の判別 Union 型。"""


# ---------------------------------------------------------------------------
# InteractionTrace
# ---------------------------------------------------------------------------

class InteractionTrace(BaseModel):
    """1 記録セッション分の凍結済み Interaction 列。

    追加順が時系列順と一致する。生成後は変更できず、
    パラメータ抽出やスクリプト合成から並行に読み取られる。
    """

    model_config = ConfigDict(frozen=True)

    interactions: tuple[Interaction, ...] = Field(
        default=(), description="時系列順の Interaction 列"
    )

    @field_validator("interactions")
    @classmethod
    def _check_order(cls, v: tuple) -> tuple:
        """先頭が navigation であり、relativeTimeMs が単調非減少であることを検証する。"""
        if not v:
            return v
        if not isinstance(v[0], NavigationInteraction):
            raise ValueError(
                f"トレースの先頭は navigation である必要があります: {v[0].action}"
            )
        previous = 0
        for index, interaction in enumerate(v):
            if interaction.relativeTimeMs < previous:
                raise ValueError(
                    f"relativeTimeMs が減少しています: "
                    f"index={index}, {previous} → {interaction.relativeTimeMs}"
                )
            previous = interaction.relativeTimeMs
        return v

    def __len__(self) -> int:
        return len(self.interactions)

    @property
    def is_empty(self) -> bool:
        """Interaction を1件も含まないかどうかを返す。"""
        return not self.interactions

    @property
    def start_url(self) -> str:
        """記録開始時の URL を返す。空トレースの場合は空文字列。"""
        if not self.interactions:
            return ""
        return self.interactions[0].url

    @property
    def start_timestamp(self) -> int:
        """記録開始時のタイムスタンプ（エポックミリ秒）を返す。"""
        if not self.interactions:
            return 0
        return self.interactions[0].timestamp

    @property
    def duration_ms(self) -> int:
        """最後の Interaction までの経過時間（ミリ秒）を返す。"""
        if not self.interactions:
            return 0
        return self.interactions[-1].relativeTimeMs


# ---------------------------------------------------------------------------
# 派生モデル
# ---------------------------------------------------------------------------

ParameterType = Literal["string", "number", "integer", "boolean", "email"]


class Parameter(BaseModel):
    """トレースから導出された API パラメータ。

    トレース自体には保存されず、抽出時に毎回導出される。
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="パラメータ名（重複なし）")
    type: ParameterType = Field(..., description="推論された型")
    description: str = Field(default="", description="パラメータの説明")
    exampleValue: Any = Field(default=None, description="記録時の値")
    required: bool = Field(default=False, description="必須かどうか")
    sensitive: bool = Field(default=False, description="機密値かどうか")
    defaultValue: Any = Field(default=None, description="デフォルト値")


class SecuritySummary(BaseModel):
    """トレースのセキュリティ分類結果（参考情報）。"""

    model_config = ConfigDict(frozen=True)

    requiresAuth: bool = Field(default=False, description="password 入力を含むか")
    hasFormSubmission: bool = Field(default=False, description="submit を含むか")
    sensitiveData: bool = Field(default=False, description="機密データを扱うか")
    recommendations: tuple[str, ...] = Field(default=(), description="推奨事項")


class SessionMetadata(BaseModel):
    """記録セッションの付随情報（AI 改善プロンプト等で使用）。"""

    title: str = Field(default="", description="記録タイトル")
    url: str = Field(default="", description="対象サイト URL")
    durationMs: Optional[int] = Field(default=None, description="記録時間（ミリ秒）")

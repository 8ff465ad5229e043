"""
DOM スナップショット — イベント対象要素の軽量表現

ブラウザ側から送られてくる要素情報（タグ、属性、テキスト、親要素チェーン）を
Python 側で保持するためのデータクラス。セレクタリゾルバの入力となる。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(eq=False)
class ElementNode:
    """DOM 要素のスナップショット。

    children を持つ木として組み立てることも、ブラウザから受け取った
    親チェーン（各要素の index 付き）として組み立てることもできる。
    等価比較は同一性で行う（兄弟要素の位置計算に使用するため）。

    Attributes:
        tag: タグ名（大文字・小文字どちらでも可）
        attributes: 属性名 → 値の辞書
        text: textContent
        value: 入力要素の現在値
        parent: 親要素（ルートの場合は None）
        children: 子要素のリスト
        index: 親の子要素内での位置（1始まり、children から計算できない場合に使用）
        is_document: document ノードかどうか
    """

    tag: str
    attributes: dict[str, str] = field(default_factory=dict)
    text: str = ""
    value: str = ""
    parent: Optional[ElementNode] = None
    children: list[ElementNode] = field(default_factory=list)
    index: int = 0
    is_document: bool = False

    @property
    def tag_name(self) -> str:
        """小文字のタグ名を返す。"""
        return self.tag.lower()

    @property
    def id(self) -> str:
        return self.attributes.get("id", "")

    @property
    def class_name(self) -> str:
        return self.attributes.get("class", "")

    @property
    def input_kind(self) -> str:
        """input 要素の type 属性を小文字で返す（未指定は text）。"""
        return (self.attributes.get("type", "") or "text").strip().lower() or "text"

    def get(self, name: str) -> str:
        """属性値を返す。存在しない場合は空文字列。"""
        return self.attributes.get(name, "") or ""

    def append(self, child: ElementNode) -> ElementNode:
        """子要素を追加し、追加した要素を返す。"""
        child.parent = self
        self.children.append(child)
        return child

    def position(self) -> int:
        """親の子要素内での位置（1始まり）を返す。"""
        if self.parent is not None:
            for i, sibling in enumerate(self.parent.children, start=1):
                if sibling is self:
                    return i
        return self.index or 1

    @classmethod
    def document(cls) -> ElementNode:
        """document ノードを生成する。"""
        return cls(tag="#document", is_document=True)

    @classmethod
    def from_payload(cls, data: Optional[dict[str, Any]]) -> Optional[ElementNode]:
        """ブラウザから送られた要素情報の辞書から親チェーン付きの要素を生成する。

        Args:
            data: {"tag", "attributes", "text", "value", "index", "parent"} 形式の辞書。
                  {"document": true} は document ノードを表す。

        Returns:
            生成された ElementNode。data が None の場合は None。
        """
        if not data:
            return None
        if data.get("document"):
            return cls.document()

        node = cls(
            tag=str(data.get("tag", "")),
            attributes={
                str(k): str(v) for k, v in (data.get("attributes") or {}).items()
                if v is not None
            },
            text=str(data.get("text") or ""),
            value=str(data.get("value") or ""),
            index=int(data.get("index") or 0),
        )
        node.parent = cls.from_payload(data.get("parent"))
        return node

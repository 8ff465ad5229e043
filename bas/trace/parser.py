"""
トレースパーサー — InteractionTrace の読み込み・書き出し・検証

JSON / YAML 形式のトレースファイルを Pydantic モデルと相互変換する。
形式はファイル拡張子（.json / .yaml / .yml）で判定する。

受け付ける入力形式:
  - {"interactions": [...]} 形式のオブジェクト
  - Interaction 配列そのもの（旧レコーダーの出力形式）
"""

from __future__ import annotations

import io
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .schema import InteractionTrace

logger = logging.getLogger(__name__)

_YAML_SUFFIXES = (".yaml", ".yml")


# ---------------------------------------------------------------------------
# バリデーションエラー表現
# ---------------------------------------------------------------------------

@dataclass
class TraceValidationError:
    """トレースファイルの検証で検出されたエラー。

    Attributes:
        message: エラーメッセージ
        location: エラー箇所（フィールドパス等）
        line: ファイル内の行番号（取得可能な場合）
    """

    message: str
    location: str = ""
    line: Optional[int] = None


# ---------------------------------------------------------------------------
# TraceParser 本体
# ---------------------------------------------------------------------------

class TraceParser:
    """トレースファイルの読み込み・書き出し・検証を担当するパーサー。"""

    def __init__(self) -> None:
        """ruamel.yaml インスタンスを初期化する。"""
        self._yaml = YAML()
        self._yaml.default_flow_style = False

    # ----- load -----

    def load(self, path: Path) -> InteractionTrace:
        """トレースファイルを読み込み、InteractionTrace に変換する。

        Args:
            path: 読み込むファイルのパス

        Returns:
            検証済みの InteractionTrace

        Raises:
            FileNotFoundError: ファイルが存在しない場合
            ValueError: 構文エラーまたはスキーマ検証エラーの場合
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"トレースファイルが見つかりません: {path}")

        text = path.read_text(encoding="utf-8")
        fmt = "yaml" if path.suffix in _YAML_SUFFIXES else "json"
        trace = self.loads(text, fmt=fmt)
        logger.debug("トレースを読み込みました: %s (%d 件)", path, len(trace))
        return trace

    def loads(self, text: str, fmt: str = "json") -> InteractionTrace:
        """文字列からトレースを読み込む。

        Args:
            text: JSON または YAML 文字列
            fmt: "json" または "yaml"

        Returns:
            検証済みの InteractionTrace

        Raises:
            ValueError: 構文エラーまたはスキーマ検証エラーの場合
        """
        data = self._parse(text, fmt)
        try:
            return InteractionTrace.model_validate(self._normalize(data))
        except PydanticValidationError as e:
            raise ValueError(f"スキーマ検証エラー: {e}") from e

    # ----- dump -----

    def dump(self, trace: InteractionTrace, path: Path) -> None:
        """InteractionTrace をファイルに書き出す。

        Args:
            trace: 書き出すトレース
            path: 出力先ファイルパス
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        fmt = "yaml" if path.suffix in _YAML_SUFFIXES else "json"
        path.write_text(self.dumps(trace, fmt=fmt), encoding="utf-8")
        logger.info("トレースを書き出しました: %s", path)

    def dumps(self, trace: InteractionTrace, fmt: str = "json") -> str:
        """InteractionTrace を文字列に変換する。

        Args:
            trace: 変換対象のトレース
            fmt: "json" または "yaml"

        Returns:
            シリアライズされた文字列
        """
        data = trace.model_dump(mode="json")
        if fmt == "yaml":
            stream = io.StringIO()
            self._yaml.dump(data, stream)
            return stream.getvalue()
        return json.dumps(data, ensure_ascii=False, indent=2) + "\n"

    # ----- validate -----

    def validate(self, path: Path) -> list[TraceValidationError]:
        """トレースファイルを検証し、違反箇所を報告する。

        Args:
            path: 検証するファイルのパス

        Returns:
            検出されたエラーのリスト（問題がなければ空）
        """
        path = Path(path)
        if not path.exists():
            return [TraceValidationError(
                message=f"トレースファイルが見つかりません: {path}",
                location="file",
            )]

        fmt = "yaml" if path.suffix in _YAML_SUFFIXES else "json"
        try:
            data = self._parse(path.read_text(encoding="utf-8"), fmt)
        except ValueError as e:
            cause = e.__cause__
            line = None
            if isinstance(cause, json.JSONDecodeError):
                line = cause.lineno
            elif getattr(cause, "problem_mark", None) is not None:
                line = cause.problem_mark.line + 1
            return [TraceValidationError(message=str(e), location=fmt, line=line)]

        errors: list[TraceValidationError] = []
        try:
            InteractionTrace.model_validate(self._normalize(data))
        except PydanticValidationError as e:
            for err in e.errors():
                loc_parts = [str(part) for part in err.get("loc", [])]
                errors.append(TraceValidationError(
                    message=err.get("msg", "不明なエラー"),
                    location=" -> ".join(loc_parts) if loc_parts else "unknown",
                ))
        except ValueError as e:
            errors.append(TraceValidationError(message=str(e), location="root"))
        return errors

    # ----- ユーティリティ -----

    def _parse(self, text: str, fmt: str) -> object:
        """JSON / YAML 文字列をパースする。

        Raises:
            ValueError: 構文エラーまたは空入力の場合
        """
        if fmt == "yaml":
            try:
                data = self._yaml.load(io.StringIO(text))
            except YAMLError as e:
                line_info = ""
                mark = getattr(e, "problem_mark", None)
                if mark is not None:
                    line_info = f" (行 {mark.line + 1}, 列 {mark.column + 1})"
                raise ValueError(f"YAML 構文エラー{line_info}: {e}") from e
            data = self._to_plain(data)
        else:
            try:
                data = json.loads(text) if text.strip() else None
            except json.JSONDecodeError as e:
                raise ValueError(
                    f"JSON 構文エラー (行 {e.lineno}, 列 {e.colno}): {e.msg}"
                ) from e

        if data is None:
            raise ValueError("トレースファイルが空です")
        return data

    @staticmethod
    def _normalize(data: object) -> dict:
        """配列形式の入力を {"interactions": [...]} に揃える。"""
        if isinstance(data, list):
            return {"interactions": data}
        if isinstance(data, dict):
            bad_keys = [key for key in data if not isinstance(key, str)]
            if bad_keys:
                raise ValueError(f"トレースのキーは文字列である必要があります: {bad_keys[0]!r}")
            return data
        raise ValueError(f"トレースの形式が不正です: {type(data).__name__}")

    def _to_plain(self, data: object) -> object:
        """ruamel.yaml の CommentedMap/CommentedSeq を通常の dict/list に再帰変換する。"""
        if isinstance(data, dict):
            return {key: self._to_plain(value) for key, value in data.items()}
        if isinstance(data, list):
            return [self._to_plain(item) for item in data]
        return data

"""
トレースパーサーのユニットテスト

JSON / YAML の読み書き、旧形式（配列）入力、
validate() のエラー報告（行番号・フィールドパス）を検証する。
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from bas.trace.parser import TraceParser
from bas.trace.schema import InteractionTrace, TypeInteraction


@pytest.fixture
def parser() -> TraceParser:
    return TraceParser()


# ---------------------------------------------------------------------------
# 読み込み・書き出し
# ---------------------------------------------------------------------------

class TestLoadDump:
    """ファイルの読み書きテスト"""

    @pytest.mark.parametrize("filename", ["trace.json", "trace.yaml", "trace.yml"])
    def test_dump_then_load(
        self, parser: TraceParser, tmp_dir: Path, login_trace: InteractionTrace, filename: str,
    ) -> None:
        """書き出したファイルを読み込むと同じトレースになること。"""
        path = tmp_dir / filename
        parser.dump(login_trace, path)
        assert parser.load(path) == login_trace

    def test_yaml_output_is_yaml(
        self, parser: TraceParser, login_trace: InteractionTrace,
    ) -> None:
        """YAML 形式で書き出した内容がブロック形式であること。"""
        text = parser.dumps(login_trace, fmt="yaml")
        assert text.startswith("interactions:\n")
        assert "action: navigation" in text
        assert "{" not in text

    def test_json_output_does_not_contain_password(
        self, parser: TraceParser, login_trace: InteractionTrace,
    ) -> None:
        """書き出したトレースに password の実値が含まれないこと。"""
        assert "hunter2" not in parser.dumps(login_trace)

    def test_array_input(self, parser: TraceParser) -> None:
        """Interaction 配列そのものの入力を受け付けること。"""
        text = json.dumps([
            {"action": "navigation", "url": "https://example.com/", "relativeTime": 0},
            {"action": "type", "selector": "#q", "text": "abc", "relativeTime": 10},
        ])
        trace = parser.loads(text)
        assert len(trace) == 2
        assert isinstance(trace.interactions[1], TypeInteraction)

    def test_load_missing_file(self, parser: TraceParser, tmp_dir: Path) -> None:
        """存在しないファイルは FileNotFoundError になること。"""
        with pytest.raises(FileNotFoundError):
            parser.load(tmp_dir / "missing.json")

    @pytest.mark.parametrize("text", ["", "   \n", "{broken", "42"])
    def test_loads_invalid_input(self, parser: TraceParser, text: str) -> None:
        """空・構文エラー・不正な形式は ValueError になること。"""
        with pytest.raises(ValueError):
            parser.loads(text)

    def test_loads_schema_error(self, parser: TraceParser) -> None:
        """スキーマ違反は ValueError になること。"""
        with pytest.raises(ValueError, match="スキーマ検証エラー"):
            parser.loads('{"interactions": [{"action": "click", "selector": "#a"}]}')

    def test_loads_non_string_keys(self, parser: TraceParser) -> None:
        """文字列以外のキーを持つ YAML は ValueError になること。"""
        with pytest.raises(ValueError, match="キーは文字列"):
            parser.loads("1: x\n", fmt="yaml")


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------

class TestValidate:
    """validate() のエラー報告テスト"""

    def test_valid_file(
        self, parser: TraceParser, tmp_dir: Path, login_trace: InteractionTrace,
    ) -> None:
        """正しいファイルではエラーが空であること。"""
        path = tmp_dir / "trace.json"
        parser.dump(login_trace, path)
        assert parser.validate(path) == []

    def test_missing_file(self, parser: TraceParser, tmp_dir: Path) -> None:
        """存在しないファイルは file の位置でエラーを返すこと。"""
        errors = parser.validate(tmp_dir / "missing.json")
        assert len(errors) == 1
        assert errors[0].location == "file"

    def test_json_syntax_error_has_line(self, parser: TraceParser, tmp_dir: Path) -> None:
        """JSON 構文エラーは行番号付きで報告されること。"""
        path = tmp_dir / "trace.json"
        path.write_text('{\n  "interactions": [\n    {,\n  ]\n}\n', encoding="utf-8")
        errors = parser.validate(path)
        assert len(errors) == 1
        assert errors[0].location == "json"
        assert errors[0].line == 3

    def test_yaml_syntax_error_has_line(self, parser: TraceParser, tmp_dir: Path) -> None:
        """YAML 構文エラーは行番号付きで報告されること。"""
        path = tmp_dir / "trace.yaml"
        path.write_text("interactions:\n  - action: navigation\n    url: [unclosed\n", encoding="utf-8")
        errors = parser.validate(path)
        assert len(errors) == 1
        assert errors[0].location == "yaml"
        assert errors[0].line is not None

    def test_schema_error_has_location(self, parser: TraceParser, tmp_dir: Path) -> None:
        """スキーマ違反はフィールドパス付きで報告されること。"""
        path = tmp_dir / "trace.json"
        path.write_text(json.dumps({
            "interactions": [
                {"action": "navigation", "url": "https://example.com/"},
                {"action": "keypress", "key": "a"},
            ]
        }), encoding="utf-8")
        errors = parser.validate(path)
        assert errors
        assert any("interactions -> 1" in e.location for e in errors)

    def test_non_object_root(self, parser: TraceParser, tmp_dir: Path) -> None:
        """オブジェクトでも配列でもないルートは root の位置で報告されること。"""
        path = tmp_dir / "trace.json"
        path.write_text('"just a string"', encoding="utf-8")
        errors = parser.validate(path)
        assert len(errors) == 1
        assert errors[0].location == "root"

    def test_non_string_keys_reported_at_root(self, parser: TraceParser, tmp_dir: Path) -> None:
        """文字列以外のキーは例外ではなく root の位置のエラーとして報告されること。"""
        path = tmp_dir / "trace.yaml"
        path.write_text("1: x\n", encoding="utf-8")
        errors = parser.validate(path)
        assert len(errors) == 1
        assert errors[0].location == "root"

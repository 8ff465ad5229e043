"""
テンプレートレンダラーのユニットテスト

コード生成用フィルタと Jinja2 環境の設定を検証する。
"""

from __future__ import annotations

import pytest
from jinja2 import UndefinedError

from bas.core.rendering import get_environment, js_literal, py_literal, render, single_line


class TestFilters:
    """フィルタのテスト"""

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("plain", '"plain"'),
            ('say "hi"', '"say \\"hi\\""'),
            ("日本語", '"日本語"'),
            ("</script>", '"</script>"'),
            (True, "true"),
            (None, "null"),
            ([1, "a"], '[1, "a"]'),
        ],
    )
    def test_js_literal(self, value, expected: str) -> None:
        """JavaScript リテラルとして埋め込める形にすること。"""
        assert js_literal(value) == expected

    @pytest.mark.parametrize(
        "value, expected",
        [
            ("it's", '"it\'s"'),
            (True, "True"),
            (None, "None"),
            (30000, "30000"),
            (1.5, "1.5"),
            (["a", False], '["a", False]'),
            ({"k": None}, '{"k": None}'),
        ],
    )
    def test_py_literal(self, value, expected: str) -> None:
        """Python リテラルとして埋め込める形にすること。"""
        assert py_literal(value) == expected

    def test_single_line(self) -> None:
        """改行と連続空白が1つの空白にまとめられること。"""
        assert single_line("  a\n\tb   c \r\n") == "a b c"


class TestEnvironment:
    """Jinja2 環境のテスト"""

    def test_environment_is_shared(self) -> None:
        """同じ環境インスタンスが再利用されること。"""
        assert get_environment() is get_environment()

    def test_filters_are_registered(self) -> None:
        """js / py / comment フィルタが登録されていること。"""
        filters = get_environment().filters
        assert filters["js"] is js_literal
        assert filters["py"] is py_literal
        assert filters["comment"] is single_line

    def test_missing_variable_is_an_error(self) -> None:
        """未定義の変数は描画エラーになること。"""
        with pytest.raises(UndefinedError):
            render("api/example_curl.sh.j2")

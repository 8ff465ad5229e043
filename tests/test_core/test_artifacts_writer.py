"""
ArtifactsWriter のユニットテスト

出力ディレクトリの作成、トレース・スクリプト・自動化パッケージ・
API 成果物の書き出しを検証する。
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from pathlib import Path

import pytest
from ruamel.yaml import YAML

from bas.api.packager import ApiPackager
from bas.core.artifacts import SCRIPT_FILENAMES, ArtifactsWriter
from bas.synth.synthesizer import ScriptSynthesizer
from bas.trace.parser import TraceParser
from bas.trace.schema import Framework, InteractionTrace

FIXED_TIME = datetime(2024, 5, 1, 9, 30, 15)


@pytest.fixture
def writer(tmp_dir: Path) -> ArtifactsWriter:
    return ArtifactsWriter(base_dir=tmp_dir / "output")


class TestCreateRunDir:
    """create_run_dir() のテスト"""

    def test_directory_name(self, writer: ArtifactsWriter, tmp_dir: Path) -> None:
        """<名前>-YYYYMMDD-HHMMSS のディレクトリを作成すること。"""
        run_dir = writer.create_run_dir("login_flow", FIXED_TIME)
        assert run_dir == tmp_dir / "output" / "login_flow-20240501-093015"
        assert run_dir.is_dir()
        assert writer.run_dir == run_dir

    def test_unsafe_characters_are_replaced(self, writer: ArtifactsWriter) -> None:
        """ディレクトリ名に使えない文字が _ に置き換えられること。"""
        run_dir = writer.create_run_dir("a/b c", FIXED_TIME)
        assert run_dir.name == "a_b_c-20240501-093015"

    def test_write_before_create_fails(self, writer: ArtifactsWriter, login_trace: InteractionTrace) -> None:
        """create_run_dir() 前の書き出しは RuntimeError になること。"""
        with pytest.raises(RuntimeError):
            writer.write_trace(login_trace)


class TestWriteArtifacts:
    """各成果物の書き出しテスト"""

    def test_write_trace(self, writer: ArtifactsWriter, login_trace: InteractionTrace) -> None:
        """トレースを trace.json として書き出すこと。"""
        writer.create_run_dir("t", FIXED_TIME)
        path = writer.write_trace(login_trace)
        assert path.name == "trace.json"
        assert TraceParser().load(path) == login_trace

    def test_write_scripts(self, writer: ArtifactsWriter, login_trace: InteractionTrace) -> None:
        """フレームワークごとのファイル名でスクリプトを書き出すこと。"""
        run_dir = writer.create_run_dir("t", FIXED_TIME)
        scripts = ScriptSynthesizer().synthesize(login_trace)
        written = writer.write_scripts({f.value: s for f, s in scripts.items()})

        assert sorted(p.name for p in written) == sorted(SCRIPT_FILENAMES.values())
        cypress = run_dir / "scripts" / "cypress.cy.js"
        assert cypress.read_text(encoding="utf-8") == scripts[Framework.CYPRESS]

    def test_write_package(self, writer: ArtifactsWriter, login_trace: InteractionTrace) -> None:
        """自動化パッケージの全ファイルを書き出すこと。"""
        run_dir = writer.create_run_dir("t", FIXED_TIME)
        package = asyncio.run(ScriptSynthesizer().build_package(login_trace))
        writer.write_package(package)

        for name in ("configuration.json", "analysis.json", "metadata.json", "DOCUMENTATION.md"):
            assert (run_dir / name).is_file()
        assert not (run_dir / "scripts" / "playwright.enhanced.js").exists()
        config = json.loads((run_dir / "configuration.json").read_text(encoding="utf-8"))
        assert config["automation"]["name"] == "Automation_1700000000000"

    def test_write_enhanced_package(self, writer: ArtifactsWriter, login_trace: InteractionTrace) -> None:
        """改善版がある場合は playwright.enhanced.js も書き出すこと。"""
        run_dir = writer.create_run_dir("t", FIXED_TIME)
        package = asyncio.run(ScriptSynthesizer().build_package(login_trace))
        package.enhanced = True
        package.enhanced_script = "// enhanced\n"
        writer.write_package(package)

        enhanced = run_dir / "scripts" / "playwright.enhanced.js"
        assert enhanced.read_text(encoding="utf-8") == "// enhanced\n"

    def test_write_api(self, writer: ArtifactsWriter, login_trace: InteractionTrace) -> None:
        """API 成果物を api/ 配下に書き出し、JSON と YAML が同じ内容であること。"""
        run_dir = writer.create_run_dir("t", FIXED_TIME)
        api = ApiPackager().package(login_trace, title="login")
        api_dir = writer.write_api(api)

        assert api_dir == run_dir / "api"
        for name in ("fastapi_app.py", "flask_app.py", "express_app.js", "README.md"):
            assert (api_dir / name).is_file()
        for name in ("curl.sh", "fetch.js", "requests_client.py"):
            assert (api_dir / "examples" / name).is_file()

        from_json = json.loads((api_dir / "openapi.json").read_text(encoding="utf-8"))
        with open(api_dir / "openapi.yaml", encoding="utf-8") as f:
            from_yaml = json.loads(json.dumps(YAML(typ="safe").load(f)))
        assert from_json == api.openapi
        assert from_yaml == from_json

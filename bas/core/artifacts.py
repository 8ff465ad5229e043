"""
ArtifactsWriter — 合成成果物の書き出し

AutomationPackage と ApiPackage をディレクトリに書き出す。

出力構造:
  <base_dir>/<name>-YYYYMMDD-HHMMSS/
    trace.json
    configuration.json
    analysis.json
    DOCUMENTATION.md
    scripts/   playwright.js, playwright.enhanced.js, puppeteer.js, selenium.js, cypress.cy.js
    api/       openapi.json, openapi.yaml, fastapi_app.py, flask_app.py, express_app.js,
               README.md, examples/
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

from ruamel.yaml import YAML

from ..trace.parser import TraceParser
from ..trace.schema import Framework, InteractionTrace

if TYPE_CHECKING:
    from ..api.packager import ApiPackage
    from ..synth.synthesizer import AutomationPackage

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^\w\-]")
"""ディレクトリ名に使用できない文字を検出する正規表現。"""

# フレームワーク → スクリプトのファイル名
SCRIPT_FILENAMES = {
    Framework.PLAYWRIGHT.value: "playwright.js",
    Framework.PUPPETEER.value: "puppeteer.js",
    Framework.SELENIUM.value: "selenium.js",
    Framework.CYPRESS.value: "cypress.cy.js",
}


def _write_json(path: Path, data: Any) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
        f.write("\n")


def _write_text(path: Path, text: str) -> None:
    path.write_text(text, encoding="utf-8")


@dataclass
class ArtifactsWriter:
    """合成成果物の書き出しクラス。

    Attributes:
        base_dir: 成果物ベースディレクトリ
        run_dir: 出力ディレクトリ（create_run_dir() で設定される）
    """

    base_dir: Path = field(default_factory=lambda: Path("output"))
    run_dir: Optional[Path] = field(default=None, init=False)

    def create_run_dir(self, name: str = "automation", timestamp: Optional[datetime] = None) -> Path:
        """出力ディレクトリを作成する。

        Args:
            name: ディレクトリ名の接頭辞（サニタイズされる）
            timestamp: ディレクトリ名に使用するタイムスタンプ。None の場合は現在時刻

        Returns:
            作成されたディレクトリのパス
        """
        if timestamp is None:
            timestamp = datetime.now()
        safe_name = _UNSAFE_CHARS.sub("_", name) or "automation"
        self.run_dir = self.base_dir / f"{safe_name}-{timestamp.strftime('%Y%m%d-%H%M%S')}"
        self.run_dir.mkdir(parents=True, exist_ok=True)
        logger.info("出力ディレクトリを作成しました: %s", self.run_dir)
        return self.run_dir

    def _require_run_dir(self) -> Path:
        if self.run_dir is None:
            raise RuntimeError("run_dir が未設定です。create_run_dir() を先に呼び出してください。")
        return self.run_dir

    def write_trace(self, trace: InteractionTrace) -> Path:
        path = self._require_run_dir() / "trace.json"
        TraceParser().dump(trace, path)
        return path

    def write_scripts(self, scripts: dict[str, str], enhanced_script: Optional[str] = None) -> list[Path]:
        """スクリプトを scripts/ に書き出す。

        Args:
            scripts: フレームワーク名 → ソースコード
            enhanced_script: AI 改善版の Playwright スクリプト（任意）

        Returns:
            書き出したファイルのパス一覧
        """
        scripts_dir = self._require_run_dir() / "scripts"
        scripts_dir.mkdir(parents=True, exist_ok=True)

        written = []
        for framework, source in scripts.items():
            path = scripts_dir / SCRIPT_FILENAMES.get(framework, f"{framework}.js")
            _write_text(path, source)
            written.append(path)
        if enhanced_script is not None:
            path = scripts_dir / "playwright.enhanced.js"
            _write_text(path, enhanced_script)
            written.append(path)
        logger.info("スクリプトを書き出しました: %d 件", len(written))
        return written

    def write_package(self, package: AutomationPackage) -> Path:
        """AutomationPackage を書き出す。"""
        run_dir = self._require_run_dir()
        self.write_scripts(
            package.scripts,
            package.enhanced_script if package.enhanced else None,
        )
        _write_json(run_dir / "configuration.json", package.configuration)
        _write_json(run_dir / "analysis.json", package.analysis.model_dump())
        _write_json(run_dir / "metadata.json", package.metadata)
        _write_text(run_dir / "DOCUMENTATION.md", package.documentation)
        return run_dir

    def write_api(self, api: ApiPackage) -> Path:
        """ApiPackage を api/ に書き出す。"""
        api_dir = self._require_run_dir() / "api"
        examples_dir = api_dir / "examples"
        examples_dir.mkdir(parents=True, exist_ok=True)

        _write_json(api_dir / "openapi.json", api.openapi)
        yaml = YAML()
        yaml.default_flow_style = False
        with open(api_dir / "openapi.yaml", "w", encoding="utf-8") as f:
            yaml.dump(api.openapi, f)

        for filename, source in api.scaffolds.items():
            _write_text(api_dir / filename, source)
        _write_text(api_dir / "README.md", api.documentation)
        for filename, source in api.examples.items():
            _write_text(examples_dir / filename, source)

        logger.info("API 成果物を書き出しました: %s", api_dir)
        return api_dir

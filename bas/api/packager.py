"""
ApiPackager — パラメータと合成済みスクリプトから API 成果物を生成

トレースから抽出したパラメータとセキュリティ分類を元に、
OpenAPI 3.0.3 ドキュメント、サーバースキャフォールド
（FastAPI / Flask / Express）、Markdown ドキュメント、利用例を生成する。
スキャフォールドは合成済みの Playwright スクリプト（scripts/playwright.js）を
実行する前提で出力する。

主な機能:
  - sanitize_name(): API 名の正規化
  - ApiPackager.build_metadata(): API メタデータの構築
  - ApiPackager.openapi_document(): OpenAPI ドキュメントの生成
  - ApiPackager.package(): 全成果物の生成
"""

from __future__ import annotations

import json
import keyword
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.rendering import render
from ..params.extractor import DEFAULT_TIMEOUT_MS, extract_parameters
from ..params.security import classify_security
from ..trace.schema import InteractionTrace, Parameter, SecuritySummary

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"
DEFAULT_BASE_URL = "http://localhost:3000"

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_NON_IDENT = re.compile(r"\W")

# Parameter.type → (OpenAPI type, format)
_OPENAPI_TYPES: dict[str, tuple[str, Optional[str]]] = {
    "string": ("string", None),
    "number": ("number", None),
    "integer": ("integer", None),
    "boolean": ("boolean", None),
    "email": ("string", "email"),
}

_PYTHON_TYPES = {
    "string": "str",
    "number": "float",
    "integer": "int",
    "boolean": "bool",
    "email": "str",
}


# ---------------------------------------------------------------------------
# モデル定義
# ---------------------------------------------------------------------------

class Endpoint(BaseModel):
    """生成 API のエンドポイント。"""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., description="パス")
    method: str = Field(..., description="HTTP メソッド")
    description: str = Field(default="", description="説明")


class ApiMetadata(BaseModel):
    """生成 API のメタデータ。"""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="正規化済みの API 名")
    description: str = Field(default="", description="API の説明")
    version: str = Field(default=API_VERSION, description="API バージョン")
    baseUrl: str = Field(default=DEFAULT_BASE_URL, description="サーバーのベース URL")
    parameters: tuple[Parameter, ...] = Field(default=(), description="リクエストパラメータ")
    endpoints: tuple[Endpoint, ...] = Field(default=(), description="エンドポイント一覧")
    security: SecuritySummary = Field(default_factory=SecuritySummary)

    @property
    def execute_path(self) -> str:
        return f"/api/{self.name}/execute"


@dataclass
class ApiPackage:
    """package() の結果。

    Attributes:
        metadata: API メタデータ
        openapi: OpenAPI 3.0.3 ドキュメント
        scaffolds: ファイル名 → サーバースキャフォールドのソース
        documentation: Markdown ドキュメント
        examples: ファイル名 → 利用例
    """

    metadata: ApiMetadata
    openapi: dict[str, Any]
    scaffolds: dict[str, str] = field(default_factory=dict)
    documentation: str = ""
    examples: dict[str, str] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# ヘルパー関数
# ---------------------------------------------------------------------------

def sanitize_name(name: str) -> str:
    """小文字化し、[a-z0-9] 以外を _ に置き換える。"""
    return _NON_ALNUM.sub("_", name.lower())


def default_endpoints() -> tuple[Endpoint, ...]:
    return (
        Endpoint(path="/execute", method="POST", description="パラメータを指定して自動化を実行する"),
        Endpoint(path="/health", method="GET", description="サービスの稼働状態を確認する"),
        Endpoint(path="/docs", method="GET", description="API ドキュメントを取得する"),
    )


def python_identifier(name: str, taken: set[str]) -> str:
    """パラメータ名から重複しない Python 識別子を作る。"""
    ident = _NON_IDENT.sub("_", name) or "param"
    if ident[0].isdigit() or ident.startswith("_") or keyword.iskeyword(ident):
        ident = f"p_{ident}"
    candidate = ident
    suffix = 2
    while candidate in taken:
        candidate = f"{ident}_{suffix}"
        suffix += 1
    taken.add(candidate)
    return candidate


def _scaffold_fields(parameters: tuple[Parameter, ...]) -> list[dict[str, Any]]:
    """テンプレートに渡すフィールド情報を作る。"""
    taken: set[str] = set()
    fields = []
    for param in parameters:
        default = param.defaultValue if param.defaultValue is not None else param.exampleValue
        fields.append(
            {
                "name": param.name,
                "ident": python_identifier(param.name, taken),
                "py_type": _PYTHON_TYPES[param.type],
                "required": param.required,
                "default": default,
                "example": param.exampleValue,
                "description": param.description,
            }
        )
    return fields


# ---------------------------------------------------------------------------
# ApiPackager 本体
# ---------------------------------------------------------------------------

class ApiPackager:
    """API 成果物の生成クラス。

    使用例::

        packager = ApiPackager()
        api = packager.package(trace, title="Login Flow")
    """

    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout_ms: int = DEFAULT_TIMEOUT_MS) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_ms = timeout_ms

    def build_metadata(
        self,
        trace: InteractionTrace,
        title: str = "",
        description: str = "",
    ) -> ApiMetadata:
        """トレースから API メタデータを構築する。

        Args:
            trace: 対象トレース
            title: API 名の元になるタイトル。空の場合は開始タイムスタンプから作る
            description: API の説明

        Returns:
            ApiMetadata
        """
        name = sanitize_name(title or f"automation_{trace.start_timestamp}")
        return ApiMetadata(
            name=name,
            description=description or f"{len(trace)} 件の記録操作から生成したブラウザ自動化 API",
            baseUrl=self._base_url,
            parameters=tuple(extract_parameters(trace, self._timeout_ms)),
            endpoints=default_endpoints(),
            security=classify_security(trace),
        )

    def openapi_document(self, metadata: ApiMetadata) -> dict[str, Any]:
        """OpenAPI 3.0.3 ドキュメントを生成する。"""
        properties: dict[str, Any] = {}
        for param in metadata.parameters:
            oa_type, oa_format = _OPENAPI_TYPES[param.type]
            schema: dict[str, Any] = {
                "type": oa_type,
                "description": param.description,
                "example": param.exampleValue,
            }
            if oa_format:
                schema["format"] = oa_format
            if param.defaultValue is not None:
                schema["default"] = param.defaultValue
            properties[param.name] = schema

        request_schema: dict[str, Any] = {"type": "object", "properties": properties}
        required = [p.name for p in metadata.parameters if p.required]
        if required:
            request_schema["required"] = required

        execute: dict[str, Any] = {
            "summary": "自動化を実行する",
            "description": metadata.description,
            "requestBody": {
                "required": True,
                "content": {"application/json": {"schema": request_schema}},
            },
            "responses": {
                "200": {
                    "description": "自動化の実行に成功",
                    "content": {
                        "application/json": {
                            "schema": {
                                "type": "object",
                                "properties": {
                                    "success": {"type": "boolean"},
                                    "result": {"type": "object"},
                                    "executed_at": {"type": "string", "format": "date-time"},
                                },
                            }
                        }
                    },
                },
                "400": {"description": "必須パラメータの不足"},
                "500": {"description": "サーバー内部エラー"},
            },
        }

        components: dict[str, Any] = {"securitySchemes": {}}
        if metadata.security.requiresAuth:
            components["securitySchemes"]["bearerAuth"] = {
                "type": "http",
                "scheme": "bearer",
                "bearerFormat": "JWT",
            }
            execute["security"] = [{"bearerAuth": []}]

        return {
            "openapi": "3.0.3",
            "info": {
                "title": metadata.name,
                "description": metadata.description,
                "version": metadata.version,
            },
            "servers": [{"url": metadata.baseUrl, "description": "開発サーバー"}],
            "paths": {
                metadata.execute_path: {"post": execute},
                "/health": {
                    "get": {
                        "summary": "ヘルスチェック",
                        "responses": {
                            "200": {
                                "description": "稼働中",
                                "content": {
                                    "application/json": {
                                        "schema": {
                                            "type": "object",
                                            "properties": {
                                                "status": {"type": "string"},
                                                "service": {"type": "string"},
                                            },
                                        }
                                    }
                                },
                            }
                        },
                    }
                },
            },
            "components": components,
        }

    def package(
        self,
        trace: InteractionTrace,
        title: str = "",
        description: str = "",
    ) -> ApiPackage:
        """API 成果物一式を生成する。

        Args:
            trace: 対象トレース
            title: API 名の元になるタイトル
            description: API の説明

        Returns:
            ApiPackage
        """
        metadata = self.build_metadata(trace, title, description)
        request_body = json.dumps(
            {p.name: p.exampleValue for p in metadata.parameters},
            ensure_ascii=False,
            indent=2,
        )
        context = {
            "meta": metadata,
            "fields": _scaffold_fields(metadata.parameters),
            "endpoints": [e.model_dump() for e in metadata.endpoints],
            "parameters": [p.model_dump() for p in metadata.parameters],
            "request_body": request_body,
            "timeout_ms": self._timeout_ms,
            # シェルの単一引用符内に埋め込むためのエスケープ
            "curl_body": request_body.replace("'", "'\\''"),
        }

        api = ApiPackage(
            metadata=metadata,
            openapi=self.openapi_document(metadata),
            scaffolds={
                "fastapi_app.py": render("api/fastapi_app.py.j2", **context),
                "flask_app.py": render("api/flask_app.py.j2", **context),
                "express_app.js": render("api/express_app.js.j2", **context),
            },
            documentation=render("api/README.md.j2", **context),
            examples={
                "curl.sh": render("api/example_curl.sh.j2", **context),
                "fetch.js": render("api/example_fetch.js.j2", **context),
                "requests_client.py": render("api/example_requests.py.j2", **context),
            },
        )
        logger.info(
            "API 成果物を生成しました: %s（パラメータ %d 件）",
            metadata.name,
            len(metadata.parameters),
        )
        return api

"""
CLI エントリポイント — Typer ベースのコマンドラインインターフェース

bas コマンドとして以下のサブコマンドを提供する:
  - record: ブラウザ操作を記録してトレースファイルを出力
  - validate: トレースファイルのスキーマ検証
  - synth: トレースから各フレームワークのスクリプトを生成
  - params: 抽出パラメータの一覧表示
  - security: セキュリティ分類の表示
  - estimate: 概算実行時間の表示
  - export-api: OpenAPI・サーバースキャフォールドの生成
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer

from .config import StudioConfig, load_config_from_env
from .trace.parser import TraceParser
from .trace.schema import Framework, InteractionTrace, SessionMetadata

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Typer アプリ定義
# ---------------------------------------------------------------------------

app = typer.Typer(
    help=(
        "bas — ブラウザ操作レコーダー & 自動化スクリプト生成ツール\n\n"
        "基本の流れ:\n"
        "  1. bas record URL -o trace.json   操作を記録（ブラウザが開きます）\n"
        "  2. bas synth trace.json           スクリプトを生成\n"
        "  3. bas export-api trace.json      API 雛形を生成\n\n"
        "詳しくは各コマンドに --help を付けてください。"
    ),
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="詳細ログを出力する"),
) -> None:
    """ログレベルを設定する。"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _load_trace(path: Path) -> InteractionTrace:
    return TraceParser().load(path)


def _config() -> StudioConfig:
    return load_config_from_env()


# ---------------------------------------------------------------------------
# record コマンド
# ---------------------------------------------------------------------------

@app.command()
def record(
    url: Optional[str] = typer.Argument(
        None, help="記録対象の URL（省略時は対話入力）",
    ),
    output: Path = typer.Option(
        Path("trace.json"), "--output", "-o", help="出力先トレースファイル（.json / .yaml）",
    ),
    channel: str = typer.Option(
        "chromium", "--channel", "-c",
        help="ブラウザチャンネル (chromium / chrome / msedge)",
    ),
    viewport: Optional[str] = typer.Option(
        None, "--viewport", help="ビューポートサイズ (幅,高さ)",
    ),
) -> None:
    """ブラウザ操作を記録し、トレースファイルに書き出す。

    ブラウザ（ページ）を閉じると記録が終了します。
    """
    from .recorder.browser import record_to_file

    if url is None:
        url = typer.prompt("記録する URL を入力してください")

    config = _config()
    try:
        if viewport:
            parts = viewport.split(",")
            size = (int(parts[0]), int(parts[1]) if len(parts) > 1 else config.viewport_height)
        else:
            size = config.viewport
    except ValueError:
        typer.echo(f"エラー: ビューポートの形式が不正です: {viewport}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"URL: {url}")
    typer.echo("ブラウザを閉じると記録が終了します。\n")

    output.parent.mkdir(parents=True, exist_ok=True)
    try:
        trace = record_to_file(
            url, output, channel=channel, viewport=size, headless=config.headless,
        )
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)

    if trace is None:
        typer.echo("操作が記録されませんでした。")
        raise typer.Exit(code=0)
    typer.echo(f"記録完了: {output}（{len(trace)} 件）")


# ---------------------------------------------------------------------------
# validate コマンド
# ---------------------------------------------------------------------------

@app.command()
def validate(
    trace_file: Path = typer.Argument(..., help="検証するトレースファイル"),
) -> None:
    """トレースファイルのスキーマ検証を行う。"""
    errors = TraceParser().validate(trace_file)

    if not errors:
        typer.echo(f"✓ {trace_file}: スキーマ検証 OK")
    else:
        for err in errors:
            line_info = f" (行 {err.line})" if err.line else ""
            typer.echo(f"✗ {err.location}{line_info}: {err.message}", err=True)
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# synth コマンド
# ---------------------------------------------------------------------------

@app.command()
def synth(
    trace_file: Path = typer.Argument(..., help="入力トレースファイル"),
    output_dir: Optional[Path] = typer.Option(
        None, "--output", "-o", help="出力ディレクトリ（デフォルト: BAS_OUTPUT_DIR）",
    ),
    targets: Optional[list[Framework]] = typer.Option(
        None, "--target", "-t", help="出力フレームワーク（複数指定可、省略時は全て）",
    ),
    enhance: bool = typer.Option(
        False, "--enhance", help="AI でスクリプトを改善する（ai extra が必要）",
    ),
    title: str = typer.Option("", "--title", help="記録タイトル"),
) -> None:
    """トレースから自動化スクリプトを生成する。"""
    from .core.artifacts import ArtifactsWriter
    from .synth.synthesizer import ScriptSynthesizer

    config = _config()
    try:
        trace = _load_trace(trace_file)
        synthesizer = ScriptSynthesizer(viewport=config.viewport, timeout_ms=config.timeout_ms)
        writer = ArtifactsWriter(base_dir=output_dir or Path(config.output_dir))

        if enhance:
            metadata = SessionMetadata(
                title=title, url=trace.start_url, durationMs=trace.duration_ms,
            )
            package = asyncio.run(_build_enhanced_package(synthesizer, trace, metadata, config))
            if targets:
                keep = {Framework(t).value for t in targets}
                package.scripts = {k: v for k, v in package.scripts.items() if k in keep}
            run_dir = writer.create_run_dir(title or "automation")
            writer.write_trace(trace)
            writer.write_package(package)
            if not package.enhanced:
                typer.echo("AI 改善に失敗したため基本スクリプトを出力しました。", err=True)
        else:
            scripts = synthesizer.synthesize(trace, targets or None)
            run_dir = writer.create_run_dir(title or "automation")
            writer.write_trace(trace)
            writer.write_scripts({f.value: s for f, s in scripts.items()})
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"出力先: {run_dir}")


def _create_llm_client():
    """OpenAI クライアントを作成する。作成できない場合は None を返す。"""
    try:
        import openai
    except ImportError:
        logger.warning("openai パッケージが見つかりません。AI 改善を行わずに出力します")
        return None

    from .ai import OpenAiLlmClient

    try:
        return OpenAiLlmClient()
    except openai.OpenAIError as exc:
        logger.warning("AI クライアントを作成できません。AI 改善を行わずに出力します: %s", exc)
        return None


async def _build_enhanced_package(synthesizer, trace, metadata, config: StudioConfig):
    from .ai import (
        DocumentationWriter,
        InteractionAnalyzer,
        ModelRotation,
        ScriptEnhancer,
    )

    client = _create_llm_client()
    if client is None:
        return await synthesizer.build_package(trace, metadata)

    rotation = ModelRotation(config.ai_models)
    return await synthesizer.build_package(
        trace,
        metadata,
        enhancer=ScriptEnhancer(
            client,
            cache_size=config.ai_cache_size,
            timeout=config.ai_timeout,
            rotation=rotation,
        ),
        analyzer=InteractionAnalyzer(client, rotation=rotation, timeout=config.ai_timeout),
        documenter=DocumentationWriter(client, rotation=rotation, timeout=config.ai_timeout),
    )


# ---------------------------------------------------------------------------
# params / security / estimate コマンド
# ---------------------------------------------------------------------------

@app.command()
def params(
    trace_file: Path = typer.Argument(..., help="入力トレースファイル"),
    as_json: bool = typer.Option(False, "--json", help="JSON 形式で出力する"),
) -> None:
    """トレースから抽出したパラメータを表示する。"""
    from .params.extractor import extract_parameters

    try:
        parameters = extract_parameters(_load_trace(trace_file), _config().timeout_ms)
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)

    if as_json:
        typer.echo(json.dumps(
            [p.model_dump() for p in parameters], ensure_ascii=False, indent=2,
        ))
        return

    for p in parameters:
        flags = []
        if p.required:
            flags.append("必須")
        if p.sensitive:
            flags.append("機密")
        flag_text = f" [{', '.join(flags)}]" if flags else ""
        typer.echo(f"{p.name:<24} {p.type:<8}{flag_text}  例: {p.exampleValue}")


@app.command()
def security(
    trace_file: Path = typer.Argument(..., help="入力トレースファイル"),
) -> None:
    """トレースのセキュリティ分類を表示する。"""
    from .params.security import classify_security

    try:
        summary = classify_security(_load_trace(trace_file))
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(json.dumps(summary.model_dump(), ensure_ascii=False, indent=2))


@app.command()
def estimate(
    trace_file: Path = typer.Argument(..., help="入力トレースファイル"),
) -> None:
    """トレースの概算実行時間を表示する（目安であり保証値ではない）。"""
    from .synth.synthesizer import estimate_runtime

    try:
        trace = _load_trace(trace_file)
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(estimate_runtime(trace))


# ---------------------------------------------------------------------------
# export-api コマンド
# ---------------------------------------------------------------------------

@app.command("export-api")
def export_api(
    trace_file: Path = typer.Argument(..., help="入力トレースファイル"),
    output_dir: Optional[Path] = typer.Option(
        None, "--output", "-o", help="出力ディレクトリ（デフォルト: BAS_OUTPUT_DIR）",
    ),
    title: str = typer.Option("", "--title", help="API 名の元になるタイトル"),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="生成 API のベース URL（デフォルト: BAS_API_BASE_URL）",
    ),
) -> None:
    """OpenAPI ドキュメントとサーバースキャフォールドを生成する。"""
    from .api.packager import ApiPackager
    from .core.artifacts import ArtifactsWriter
    from .synth.synthesizer import ScriptSynthesizer

    config = _config()
    try:
        trace = _load_trace(trace_file)
        packager = ApiPackager(base_url or config.api_base_url, timeout_ms=config.timeout_ms)
        api = packager.package(trace, title=title)
        synthesizer = ScriptSynthesizer(viewport=config.viewport, timeout_ms=config.timeout_ms)
        scripts = synthesizer.synthesize(trace)

        writer = ArtifactsWriter(base_dir=output_dir or Path(config.output_dir))
        run_dir = writer.create_run_dir(api.metadata.name)
        writer.write_trace(trace)
        writer.write_scripts({f.value: s for f, s in scripts.items()})
        writer.write_api(api)
    except Exception as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"API 名: {api.metadata.name}")
    typer.echo(f"パラメータ: {len(api.metadata.parameters)} 件")
    typer.echo(f"出力先: {run_dir}")

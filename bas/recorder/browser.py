"""
ブラウザキャプチャ面 — Playwright ページを CaptureSurface として扱う

ページに記録用 JavaScript を注入し、expose_function で公開した
ブリッジ関数経由で DOM イベントを Python 側のリスナーへ配送する。
ページ遷移のたびにスクリプトを再注入し、登録中のファミリーを再アタッチする。

主な機能:
  - PlaywrightSurface: Playwright sync API の Page を包むキャプチャ面
  - BrowserRecorder: ブラウザを起動し、閉じられるまで操作を記録する
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

from ..trace.schema import InteractionTrace
from .capture import CaptureSurface, EventFamily, EventHandler, start_capture, stop_capture

if TYPE_CHECKING:
    from playwright.sync_api import Frame, Page

logger = logging.getLogger(__name__)

# 注入スクリプトのパス
_INJECTED_JS_PATH = Path(__file__).parent / "injected.js"

# ページ側から呼び出されるブリッジ関数名
_BRIDGE_NAME = "__basEmit"


# ---------------------------------------------------------------------------
# PlaywrightSurface
# ---------------------------------------------------------------------------

class PlaywrightSurface(CaptureSurface):
    """Playwright の Page を包むキャプチャ面。

    ブリッジは最初のリスナー登録時に一度だけ設置する。
    メインフレームのナビゲーションも history ファミリーとして通知する。
    """

    def __init__(self, page: Page) -> None:
        """PlaywrightSurface を初期化する。

        Args:
            page: Playwright sync API の Page オブジェクト
        """
        super().__init__()
        self._page = page
        self._listeners: dict[EventFamily, list[EventHandler]] = {}
        self._bridge_installed = False
        self._script = _INJECTED_JS_PATH.read_text(encoding="utf-8")

    def current_url(self) -> str:
        return self._page.url

    def add_listener(self, family: EventFamily, handler: EventHandler) -> None:
        family = EventFamily(family)
        self._install_bridge()
        handlers = self._listeners.setdefault(family, [])
        handlers.append(handler)
        if len(handlers) == 1:
            self._evaluate(f"window.__basCapture.attach({json.dumps(family.value)})")

    def remove_listener(self, family: EventFamily, handler: EventHandler) -> None:
        family = EventFamily(family)
        handlers = self._listeners.get(family, [])
        if handler in handlers:
            handlers.remove(handler)
        if not handlers:
            self._listeners.pop(family, None)
            self._evaluate(
                f"window.__basCapture && window.__basCapture.detach({json.dumps(family.value)})"
            )

    def listener_count(self) -> int:
        """登録中のリスナー数を返す。"""
        return sum(len(h) for h in self._listeners.values())

    # -------------------------------------------------------------------
    # 内部処理
    # -------------------------------------------------------------------

    def _install_bridge(self) -> None:
        """ブリッジ関数の公開とスクリプト注入を行う。"""
        if self._bridge_installed:
            return
        self._page.expose_function(_BRIDGE_NAME, self._on_emit)
        self._page.add_init_script(self._script)
        self._page.on("load", self._on_load)
        self._page.on("framenavigated", self._on_frame_navigated)
        self._evaluate(self._script)
        self._bridge_installed = True

    def _evaluate(self, expression: str) -> None:
        """ページでスクリプトを評価する。ページが閉じている場合はスキップ。"""
        try:
            self._page.evaluate(expression)
        except Exception as exc:
            logger.debug("スクリプト評価をスキップ: %s", exc)

    def _on_load(self, *_: Any) -> None:
        """ページ遷移後にスクリプトを再注入し、登録中のファミリーを再アタッチする。"""
        self._evaluate(self._script)
        for family in self._listeners:
            self._evaluate(f"window.__basCapture.attach({json.dumps(family.value)})")

    def _on_frame_navigated(self, frame: Frame) -> None:
        if frame != self._page.main_frame:
            return
        self._dispatch(EventFamily.HISTORY, {"url": frame.url})

    def _on_emit(self, family: str, payload_json: str) -> None:
        """ページ側から送信されたイベントを処理する。

        Args:
            family: イベントファミリー名
            payload_json: JSON 形式のイベントデータ
        """
        try:
            payload = json.loads(payload_json)
            event_family = EventFamily(family)
        except (json.JSONDecodeError, ValueError):
            logger.warning("不正なイベントデータ: %s %s", family, payload_json)
            return
        self._dispatch(event_family, payload)

    def _dispatch(self, family: EventFamily, payload: dict[str, Any]) -> None:
        for handler in list(self._listeners.get(family, [])):
            handler(payload)


# ---------------------------------------------------------------------------
# BrowserRecorder
# ---------------------------------------------------------------------------

class BrowserRecorder:
    """ブラウザを起動して操作を記録するレコーダー。

    使用例::

        recorder = BrowserRecorder()
        trace = recorder.record("https://example.com")
    """

    def record(
        self,
        url: str,
        channel: str = "chromium",
        viewport: tuple[int, int] = (1280, 720),
        headless: bool = False,
    ) -> InteractionTrace:
        """ブラウザを起動し、ページが閉じられるまで操作を記録する。

        Args:
            url: 記録開始 URL
            channel: ブラウザチャンネル（chromium / chrome / msedge）
            viewport: ビューポートサイズ (幅, 高さ)
            headless: ヘッドレスで起動するか

        Returns:
            記録された InteractionTrace
        """
        from playwright.sync_api import Error as PlaywrightError
        from playwright.sync_api import sync_playwright

        with sync_playwright() as pw:
            launch_kwargs: dict[str, Any] = {"headless": headless}
            if channel != "chromium":
                launch_kwargs["channel"] = channel
            browser = pw.chromium.launch(**launch_kwargs)
            context = browser.new_context(
                viewport={"width": viewport[0], "height": viewport[1]},
            )
            page = context.new_page()
            page.goto(url)
            page.wait_for_load_state("domcontentloaded")

            surface = PlaywrightSurface(page)
            session = start_capture(surface)
            logger.info("操作を記録中... ページを閉じると記録が終了します。")

            try:
                page.wait_for_event("close", timeout=0)
            except PlaywrightError as exc:
                logger.debug("ページの close 待機が中断されました: %s", exc)

            trace = stop_capture(session)

            try:
                browser.close()
            except PlaywrightError as exc:
                logger.debug("ブラウザは既に終了しています: %s", exc)

        return trace


def record_to_file(url: str, output: Path, **kwargs: Any) -> Optional[InteractionTrace]:
    """操作を記録してトレースファイルに書き出す。

    navigation 以外の操作が記録されなかった場合はファイルを書き出さず None を返す。
    """
    from ..trace.parser import TraceParser

    trace = BrowserRecorder().record(url, **kwargs)
    if len(trace) <= 1:
        logger.info("操作が記録されませんでした")
        return None
    TraceParser().dump(trace, output)
    return trace

"""
recorder パッケージ — ブラウザ操作のキャプチャ

DOM イベントを Interaction に変換し、InteractionTrace として凍結する。

主な機能:
  - resolve_selector: 要素から再実行用セレクタを生成
  - CaptureSession / start_capture / stop_capture: 記録セッション
  - InMemorySurface / PlaywrightSurface: キャプチャ面
  - BrowserRecorder: ブラウザを起動して記録
"""

from __future__ import annotations

from .browser import BrowserRecorder, PlaywrightSurface, record_to_file
from .capture import (
    AlreadyRecordingError,
    CaptureSession,
    CaptureSurface,
    EventFamily,
    InMemorySurface,
    SessionState,
    start_capture,
    stop_capture,
)
from .dom import ElementNode
from .selector import resolve_selector

__all__ = [
    "AlreadyRecordingError",
    "BrowserRecorder",
    "CaptureSession",
    "CaptureSurface",
    "ElementNode",
    "EventFamily",
    "InMemorySurface",
    "PlaywrightSurface",
    "SessionState",
    "record_to_file",
    "resolve_selector",
    "start_capture",
    "stop_capture",
]

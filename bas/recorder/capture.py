"""
キャプチャエンジン — 生の DOM イベントを Interaction に変換

記録セッション（CaptureSession）はキャプチャ面（CaptureSurface）に
イベントファミリーごとのリスナーを1つずつ登録し、届いたイベントを
Interaction に変換してバッファに追加する。停止時に全リスナーを解除し、
バッファを凍結した InteractionTrace を返す。

状態遷移: IDLE → RECORDING → STOPPED（start / stop の明示呼び出しのみ）

1つのキャプチャ面で同時に RECORDING になれるセッションは1つだけ。
状態はセッションとキャプチャ面が保持し、プロセス全体の共有状態は持たない。
"""

from __future__ import annotations

import enum
import logging
import time
from typing import Any, Callable, Optional

from ..trace.schema import (
    CONTROL_KEYS,
    PASSWORD_SENTINEL,
    ClickInteraction,
    Coordinates,
    InteractionTrace,
    KeyPressInteraction,
    NavigationInteraction,
    ScrollInteraction,
    SubmitInteraction,
    TypeInteraction,
)
from .dom import ElementNode
from .selector import resolve_selector

logger = logging.getLogger(__name__)

EventHandler = Callable[[dict[str, Any]], None]

# クリック時に保持するテキストの最大文字数
_MAX_SNIPPET_LENGTH = 100


# ---------------------------------------------------------------------------
# エラー定義
# ---------------------------------------------------------------------------

class AlreadyRecordingError(RuntimeError):
    """キャプチャ面で既に記録中のセッションがある場合のエラー。"""


# ---------------------------------------------------------------------------
# イベントファミリー・状態
# ---------------------------------------------------------------------------

class EventFamily(str, enum.Enum):
    """キャプチャ面から届くイベントの種別。"""

    CLICK = "click"
    INPUT = "input"
    SUBMIT = "submit"
    SCROLL = "scroll"
    HISTORY = "history"
    KEYDOWN = "keydown"


class SessionState(enum.Enum):
    """記録セッションの状態。"""

    IDLE = "idle"
    RECORDING = "recording"
    STOPPED = "stopped"


# ---------------------------------------------------------------------------
# キャプチャ面
# ---------------------------------------------------------------------------

class CaptureSurface:
    """ネイティブイベントとナビゲーション通知を供給するキャプチャ面の基底クラス。

    サブクラスは current_url / add_listener / remove_listener を実装する。
    記録中のセッションは active_session で参照できる。
    """

    def __init__(self) -> None:
        self.active_session: Optional[CaptureSession] = None

    def current_url(self) -> str:
        """現在表示中の URL を返す。"""
        raise NotImplementedError

    def add_listener(self, family: EventFamily, handler: EventHandler) -> None:
        """イベントファミリーにリスナーを登録する。"""
        raise NotImplementedError

    def remove_listener(self, family: EventFamily, handler: EventHandler) -> None:
        """登録済みのリスナーを解除する。"""
        raise NotImplementedError


class InMemorySurface(CaptureSurface):
    """メモリ上のキャプチャ面。

    dispatch() で生イベントを直接配送する。記録済みの生イベントログの
    再生やテストで使用する。
    """

    def __init__(self, url: str = "about:blank") -> None:
        super().__init__()
        self.url = url
        self._listeners: dict[EventFamily, list[EventHandler]] = {}

    def current_url(self) -> str:
        return self.url

    def add_listener(self, family: EventFamily, handler: EventHandler) -> None:
        self._listeners.setdefault(EventFamily(family), []).append(handler)

    def remove_listener(self, family: EventFamily, handler: EventHandler) -> None:
        handlers = self._listeners.get(EventFamily(family), [])
        if handler in handlers:
            handlers.remove(handler)

    def listener_count(self, family: Optional[EventFamily] = None) -> int:
        """登録中のリスナー数を返す。family 省略時は全ファミリーの合計。"""
        if family is not None:
            return len(self._listeners.get(EventFamily(family), []))
        return sum(len(h) for h in self._listeners.values())

    def dispatch(self, family: EventFamily, event: dict[str, Any]) -> None:
        """登録中のリスナーへイベントを配送する。"""
        for handler in list(self._listeners.get(EventFamily(family), [])):
            handler(event)

    def navigate(self, url: str) -> None:
        """URL を変更し、履歴変更イベントを配送する。"""
        self.url = url
        self.dispatch(EventFamily.HISTORY, {"url": url})


# ---------------------------------------------------------------------------
# CaptureSession 本体
# ---------------------------------------------------------------------------

class CaptureSession:
    """1つのキャプチャ面に対する記録セッション（SessionHandle）。

    イベントハンドラはキャプチャ面のイベントループから逐次呼ばれる前提で、
    バッファへの追加はすべて同期的に行う。

    使用例::

        session = start_capture(surface)
        ...  # ユーザー操作
        trace = stop_capture(session)
    """

    def __init__(
        self,
        surface: CaptureSurface,
        *,
        wall_clock: Callable[[], float] = time.time,
        monotonic_clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """CaptureSession を初期化する。

        Args:
            surface: 記録対象のキャプチャ面
            wall_clock: タイムスタンプ用の時計（秒）
            monotonic_clock: 経過時間計算用の単調時計（秒）
        """
        self._surface = surface
        self._wall_clock = wall_clock
        self._monotonic_clock = monotonic_clock
        self._state = SessionState.IDLE
        self._buffer: list = []
        self._listeners: list[tuple[EventFamily, EventHandler]] = []
        self._started_at = 0.0
        self._last_relative_ms = 0
        self._last_url = ""
        self._handlers: dict[EventFamily, EventHandler] = {
            EventFamily.CLICK: self._on_click,
            EventFamily.INPUT: self._on_input,
            EventFamily.SUBMIT: self._on_submit,
            EventFamily.SCROLL: self._on_scroll,
            EventFamily.HISTORY: self._on_history,
            EventFamily.KEYDOWN: self._on_keydown,
        }

    @property
    def state(self) -> SessionState:
        """現在のセッション状態を返す。"""
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._state is SessionState.RECORDING

    @property
    def surface(self) -> CaptureSurface:
        return self._surface

    @property
    def interaction_count(self) -> int:
        """記録中バッファの Interaction 数を返す。"""
        return len(self._buffer)

    # -------------------------------------------------------------------
    # ライフサイクル
    # -------------------------------------------------------------------

    def start(self) -> None:
        """記録を開始する。

        前回のバッファを破棄し、現在の URL を最初の navigation として記録してから
        イベントファミリーごとにリスナーを1つずつ登録する。

        Raises:
            AlreadyRecordingError: キャプチャ面で記録中のセッションがある場合
        """
        if self._surface.active_session is not None:
            raise AlreadyRecordingError(
                "このキャプチャ面では既に記録中です。先に stop() を呼んでください。"
            )

        self._buffer = []
        self._started_at = self._monotonic_clock()
        self._last_relative_ms = 0
        self._last_url = self._surface.current_url()
        self._state = SessionState.RECORDING
        self._surface.active_session = self

        self._append(NavigationInteraction, url=self._last_url)

        for family in EventFamily:
            listener = self._make_listener(family)
            self._surface.add_listener(family, listener)
            self._listeners.append((family, listener))

        logger.info("記録を開始しました: %s", self._last_url)

    def stop(self) -> InteractionTrace:
        """記録を停止し、凍結したトレースを返す。

        全リスナーを解除する。記録中でない場合は何もせず空のトレースを返す。

        Returns:
            時系列順の InteractionTrace
        """
        if self._state is not SessionState.RECORDING:
            logger.debug("記録中ではないため stop をスキップしました (state=%s)", self._state.value)
            return InteractionTrace()

        for family, listener in self._listeners:
            self._surface.remove_listener(family, listener)
        self._listeners = []

        if self._surface.active_session is self:
            self._surface.active_session = None
        self._state = SessionState.STOPPED

        trace = InteractionTrace(interactions=tuple(self._buffer))
        self._buffer = []
        logger.info("記録を停止しました: %d 件", len(trace))
        return trace

    def status(self) -> dict[str, Any]:
        """記録状態のサマリーを返す。"""
        duration = 0
        if self._state is SessionState.RECORDING:
            duration = int((self._monotonic_clock() - self._started_at) * 1000)
        return {
            "isRecording": self.is_recording,
            "interactionCount": len(self._buffer),
            "durationMs": duration,
        }

    # -------------------------------------------------------------------
    # 内部処理
    # -------------------------------------------------------------------

    def _make_listener(self, family: EventFamily) -> EventHandler:
        """ファミリー用のリスナーを生成する。

        不正なイベントは警告ログを出して無視し、ホスト側へ例外を伝播させない。
        """
        handler = self._handlers[family]

        def listener(event: dict[str, Any]) -> None:
            if self._state is not SessionState.RECORDING:
                return
            try:
                handler(event)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("不正な %s イベントを無視しました: %s", family.value, exc)

        return listener

    def _append(self, model: type, **fields: Any) -> None:
        """タイムスタンプと経過時間を付与して Interaction を追加する。"""
        relative_ms = int((self._monotonic_clock() - self._started_at) * 1000)
        # 時計の巻き戻りがあっても単調非減少を保つ
        relative_ms = max(relative_ms, self._last_relative_ms)
        self._last_relative_ms = relative_ms

        interaction = model(
            timestamp=int(self._wall_clock() * 1000),
            relativeTimeMs=relative_ms,
            **fields,
        )
        self._buffer.append(interaction)
        logger.debug("記録: %s", interaction.action)

    # -------------------------------------------------------------------
    # イベントハンドラ
    # -------------------------------------------------------------------

    def _on_click(self, event: dict[str, Any]) -> None:
        target = ElementNode.from_payload(event.get("target"))
        text = target.text.strip() if target is not None else ""
        self._append(
            ClickInteraction,
            selector=resolve_selector(target),
            elementTag=_tag_of(target),
            coordinates=Coordinates(
                x=round(float(event.get("clientX", 0))),
                y=round(float(event.get("clientY", 0))),
            ),
            textSnippet=text[:_MAX_SNIPPET_LENGTH],
        )

    def _on_input(self, event: dict[str, Any]) -> None:
        target = ElementNode.from_payload(event.get("target"))
        kind = target.input_kind if target is not None else "text"
        # 入力種別のみで判定する（内容は見ない）
        if kind == "password":
            text = PASSWORD_SENTINEL
        else:
            text = target.value if target is not None else ""
        self._append(
            TypeInteraction,
            selector=resolve_selector(target),
            elementTag=_tag_of(target),
            text=text,
            inputKind=kind,
        )

    def _on_submit(self, event: dict[str, Any]) -> None:
        target = ElementNode.from_payload(event.get("target"))
        self._append(
            SubmitInteraction,
            selector=resolve_selector(target),
            elementTag=_tag_of(target),
        )

    def _on_scroll(self, event: dict[str, Any]) -> None:
        self._append(
            ScrollInteraction,
            x=round(float(event.get("scrollX", 0))),
            y=round(float(event.get("scrollY", 0))),
        )

    def _on_history(self, event: dict[str, Any]) -> None:
        url = str(event["url"])
        if url == self._last_url:
            return
        self._last_url = url
        self._append(NavigationInteraction, url=url)

    def _on_keydown(self, event: dict[str, Any]) -> None:
        key = event.get("key")
        if key not in CONTROL_KEYS:
            return
        target = ElementNode.from_payload(event.get("target"))
        self._append(KeyPressInteraction, key=key, selector=resolve_selector(target))


def _tag_of(element: Optional[ElementNode]) -> str:
    if element is None or element.is_document:
        return "document"
    return element.tag_name


# ---------------------------------------------------------------------------
# 呼び出し用 API
# ---------------------------------------------------------------------------

def start_capture(surface: CaptureSurface, **kwargs: Any) -> CaptureSession:
    """キャプチャ面で記録を開始し、セッションハンドルを返す。

    Raises:
        AlreadyRecordingError: キャプチャ面で記録中のセッションがある場合
    """
    session = CaptureSession(surface, **kwargs)
    session.start()
    return session


def stop_capture(handle: CaptureSession) -> InteractionTrace:
    """記録を停止してトレースを返す。記録中でなければ空のトレースを返す。"""
    return handle.stop()

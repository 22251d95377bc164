from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Optional

from PySide6 import QtCore

from core.logs import LogFn, resolve_log
from core.models import Channel
from core.proxy_rewrite import ProxyRewriter

from player.engine import PlaybackEngineAdapter, PlaybackEvent

# Machine d'états de lecture d'une chaîne : bascule d'une source candidate à l'autre en cas d'échec.


class PlaybackState(enum.Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class ExhaustionPolicy(enum.Enum):
    """Que faire quand on demande la source suivante alors que la dernière a échoué."""
    WRAP = "wrap"  # repartir de la première source, indéfiniment
    STOP = "stop"  # rester en ERROR avec "toutes les sources ont échoué"


ALL_SOURCES_FAILED = "Toutes les sources ont échoué"


@dataclass
class PlaybackSession:
    channel: Channel
    index: int = 0
    state: PlaybackState = PlaybackState.IDLE
    generation: int = -1
    error: str = ""

    @property
    def url(self) -> str:
        return self.channel.urls[self.index]

    @property
    def source_count(self) -> int:
        return len(self.channel.urls)

    @property
    def has_next(self) -> bool:
        return self.index + 1 < self.source_count


class SourceFallbackController(QtCore.QObject):
    """
    IDLE -> CONNECTING -> CONNECTED ; CONNECTING|CONNECTED -> ERROR ; ERROR -> CONNECTING (retry) ou IDLE.
    Toutes les opérations passent par l'adaptateur, qui garantit detach() avant chaque attach().
    À utiliser depuis le thread Qt propriétaire (les événements moteur y sont déjà ramenés).
    """

    state_changed = QtCore.Signal(object)  # PlaybackState
    error_changed = QtCore.Signal(str)
    source_changed = QtCore.Signal(int, str)  # index, URL effectivement lue
    quality_changed = QtCore.Signal(str)

    def __init__(
        self,
        adapter: PlaybackEngineAdapter,
        rewriter: Optional[ProxyRewriter] = None,
        policy: ExhaustionPolicy = ExhaustionPolicy.WRAP,
        log: LogFn | None = None,
        parent=None,
    ):
        super().__init__(parent)
        self._adapter = adapter
        self._rewriter = rewriter
        self.policy = policy
        self._log = resolve_log(log)
        self._session: Optional[PlaybackSession] = None
        self._state = PlaybackState.IDLE

        adapter.event.connect(self._on_adapter_event)

    # -------------------------
    # État
    # -------------------------
    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def session(self) -> Optional[PlaybackSession]:
        return self._session

    @property
    def current_index(self) -> Optional[int]:
        return self._session.index if self._session else None

    @property
    def error(self) -> str:
        return self._session.error if self._session else ""

    def _set_state(self, state: PlaybackState):
        if self._session is not None:
            self._session.state = state
        if state != self._state:
            self._state = state
            self.state_changed.emit(state)

    def _set_error(self, message: str):
        if self._session is not None:
            self._session.error = message
        self.error_changed.emit(message)

    # -------------------------
    # API
    # -------------------------
    def play(self, channel: Channel):
        """Nouvelle session sur `channel`, en commençant par la source préférée (index 0)."""
        self._adapter.detach()
        self._session = PlaybackSession(channel=channel)
        self._log(f"Lecture: {channel.name} ({len(channel.urls)} source(s))")
        self._connect(0)

    def retry(self) -> bool:
        s = self._session
        if s is None or self._state == PlaybackState.IDLE:
            return False

        if s.has_next:
            nxt = s.index + 1
        elif self.policy == ExhaustionPolicy.WRAP:
            nxt = 0
        else:
            self._adapter.detach()
            self._set_state(PlaybackState.ERROR)
            self._set_error(ALL_SOURCES_FAILED)
            return False

        self._connect(nxt)
        return True

    def select_source(self, index: int) -> bool:
        s = self._session
        if s is None or not (0 <= index < s.source_count) or index == s.index:
            return False
        self._connect(index)
        return True

    def cancel(self):
        self._adapter.detach()
        self._set_state(PlaybackState.IDLE)
        if self._session is not None and self._session.error:
            self._set_error("")

    def close(self):
        """Fin de session : le moteur est toujours libéré avant d'oublier la session."""
        self._adapter.detach()
        self._session = None
        self._set_state(PlaybackState.IDLE)

    # -------------------------
    # Internes
    # -------------------------
    def _connect(self, index: int):
        s = self._session
        self._adapter.detach()
        s.index = index
        if s.error:
            self._set_error("")

        url = self._rewriter.rewrite(s.url) if self._rewriter else s.url
        self._set_state(PlaybackState.CONNECTING)
        self.source_changed.emit(index, url)
        self._log(f"Lecture: source {index + 1}/{s.source_count} -> {url}", "DEBUG")
        s.generation = self._adapter.attach(url)

    @QtCore.Slot(object)
    def _on_adapter_event(self, ev: PlaybackEvent):
        s = self._session
        if s is None or ev.generation != self._adapter.generation:
            return
        if self._state not in (PlaybackState.CONNECTING, PlaybackState.CONNECTED):
            return

        if ev.is_success:
            if ev.quality_label:
                self.quality_changed.emit(ev.quality_label)
            if self._state == PlaybackState.CONNECTING:
                self._set_state(PlaybackState.CONNECTED)
                self._log(f"Lecture: source {s.index + 1} OK")
        elif ev.is_error:
            self._log(f"Lecture: source {s.index + 1} KO ({ev.message})", "WARNING")
            self._set_state(PlaybackState.ERROR)
            self._set_error(ev.message)

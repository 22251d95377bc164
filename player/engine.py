from __future__ import annotations

import enum
import functools
import sys
from dataclasses import dataclass
from typing import Callable, Optional

from PySide6 import QtCore

from core.detect import height_label, is_adaptive_manifest
from core.logs import LogFn, resolve_log

try:
    import vlc
except (ImportError, OSError, NotImplementedError):
    # python-vlc absent ou libVLC introuvable : lecture native uniquement.
    vlc = None

# Adaptateur de lecture : moteur libVLC pour les manifestes HLS/DASH, QMediaPlayer natif sinon.

MODE_ENGINE = "engine"
MODE_NATIVE = "native"

EngineEmit = Callable[[str, dict], None]


class PlaybackEventType(enum.Enum):
    MANIFEST_PARSED = "manifest_parsed"
    FATAL_ERROR = "fatal_error"
    LOADED_DATA = "loaded_data"
    NATIVE_ERROR = "native_error"


SUCCESS_EVENTS = (PlaybackEventType.MANIFEST_PARSED, PlaybackEventType.LOADED_DATA)
ERROR_EVENTS = (PlaybackEventType.FATAL_ERROR, PlaybackEventType.NATIVE_ERROR)


@dataclass(frozen=True)
class PlaybackEvent:
    type: PlaybackEventType
    generation: int
    quality_label: str = ""
    message: str = ""

    @property
    def is_success(self) -> bool:
        return self.type in SUCCESS_EVENTS

    @property
    def is_error(self) -> bool:
        return self.type in ERROR_EVENTS


def _video_surface(media_element):
    """Widget natif sur lequel VLC doit dessiner (sortie vidéo du lecteur Qt, ou l'élément lui-même)."""
    output = getattr(media_element, "videoOutput", None)
    surface = output() if callable(output) else None
    if surface is not None and hasattr(surface, "winId"):
        return surface
    if hasattr(media_element, "winId"):
        return media_element
    return None


class VlcEngine:
    """
    Instance libVLC dédiée à une tentative de lecture.
    Les callbacks VLC arrivent sur un thread VLC : on ne fait que relayer via `emit`.
    """

    def __init__(self, emit: EngineEmit, vlc_args: Optional[list[str]] = None):
        if vlc is None:
            raise RuntimeError("libVLC indisponible")
        self._emit = emit
        self._started = False
        self.instance = vlc.Instance(*(vlc_args or ["--quiet"]))
        self.player = self.instance.media_player_new()

        self._events = self.player.event_manager()
        self._attached = [
            (vlc.EventType.MediaPlayerPlaying, self._on_playing),
            (vlc.EventType.MediaPlayerEncounteredError, self._on_error),
            (vlc.EventType.MediaPlayerEndReached, self._on_end),
        ]
        for kind, cb in self._attached:
            self._events.event_attach(kind, cb)

    def load_source(self, url: str):
        self.player.set_media(self.instance.media_new(url))

    def attach_media(self, media_element):
        surface = _video_surface(media_element)
        if surface is not None:
            wid = int(surface.winId())
            if sys.platform.startswith("win"):
                self.player.set_hwnd(wid)
            elif sys.platform == "darwin":
                self.player.set_nsobject(wid)
            else:
                self.player.set_xwindow(wid)
        # VLC ne lit le manifeste qu'au démarrage du lecteur.
        self.player.play()

    def rendition_height(self) -> int:
        try:
            size = self.player.video_get_size(0)
        except Exception:
            return 0
        return int(size[1]) if size else 0

    def play(self):
        self.player.set_pause(0)

    def destroy(self):
        for kind, cb in self._attached:
            try:
                self._events.event_detach(kind)
            except Exception:
                pass
        self._attached = []
        try:
            self.player.stop()
        finally:
            self.player.release()
            self.instance.release()

    # --- callbacks (thread VLC) ---
    def _on_playing(self, _event):
        if not self._started:
            self._started = True
            self._emit("manifest_parsed", {})

    def _on_error(self, _event):
        self._emit("error", {"fatal": True, "details": "lecture VLC impossible"})

    def _on_end(self, _event):
        # Un flux live qui se termine est une panne de la source.
        self._emit("error", {"fatal": True, "details": "flux interrompu"})


def default_engine_factory(vlc_args: Optional[list[str]] = None):
    if vlc is None:
        return None
    return functools.partial(VlcEngine, vlc_args=vlc_args)


_DEFAULT = object()


class PlaybackEngineAdapter(QtCore.QObject):
    """
    Une seule instance de moteur vivante à la fois : `attach()` commence toujours par `detach()`.
    Chaque attachement reçoit une génération ; les événements d'une génération périmée sont ignorés.
    """

    event = QtCore.Signal(object)  # PlaybackEvent

    # génération, type, données ; émis depuis n'importe quel thread, traité sur le thread de l'adaptateur
    _engine_signal = QtCore.Signal(int, str, object)

    def __init__(self, media_element, engine_factory=_DEFAULT, log: LogFn | None = None, parent=None):
        super().__init__(parent)
        self.media_element = media_element
        self._engine_factory = default_engine_factory() if engine_factory is _DEFAULT else engine_factory
        self._log = resolve_log(log)

        self._engine = None
        self._mode: Optional[str] = None
        self._generation = 0
        self._native_connections: list[tuple[object, Callable]] = []
        self._native_loaded = False
        self.quality_label = ""

        self._engine_signal.connect(self._on_engine_event)

    # -------------------------
    # État
    # -------------------------
    @property
    def engine_available(self) -> bool:
        return self._engine_factory is not None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def mode(self) -> Optional[str]:
        return self._mode

    @property
    def is_attached(self) -> bool:
        return self._mode is not None

    @property
    def engine(self):
        return self._engine

    # -------------------------
    # API
    # -------------------------
    def attach(self, url: str) -> int:
        """Démarre la lecture de `url` ; retourne la génération de cet attachement."""
        self.detach()
        gen = self._generation

        if self._engine_factory is not None and is_adaptive_manifest(url):
            try:
                self._engine = self._engine_factory(functools.partial(self._emit_from_engine, gen))
                self._mode = MODE_ENGINE
                self._engine.load_source(url)
                self._engine.attach_media(self.media_element)
                return gen
            except Exception as e:
                self._log(f"Lecteur: moteur KO ({type(e).__name__}: {e}), lecture native.", "WARNING")
                self.detach()
                gen = self._generation

        self._attach_native(url, gen)
        return gen

    def detach(self):
        """Idempotent : détruit le moteur, coupe les abonnements natifs, efface la référence."""
        engine, self._engine = self._engine, None
        mode, self._mode = self._mode, None
        self._generation += 1
        self.quality_label = ""

        for signal, slot in self._native_connections:
            try:
                signal.disconnect(slot)
            except (RuntimeError, TypeError):
                pass
        self._native_connections = []

        if engine is not None:
            try:
                engine.destroy()
            except Exception as e:
                self._log(f"Lecteur: destruction moteur KO ({type(e).__name__}: {e})", "WARNING")

        if mode == MODE_NATIVE:
            try:
                self.media_element.stop()
            except Exception as e:
                self._log(f"Lecteur: arrêt natif KO ({type(e).__name__}: {e})", "WARNING")

    # -------------------------
    # Moteur adaptatif
    # -------------------------
    def _emit_from_engine(self, gen: int, kind: str, payload: Optional[dict] = None):
        self._engine_signal.emit(gen, kind, payload or {})

    @QtCore.Slot(int, str, object)
    def _on_engine_event(self, gen: int, kind: str, payload: dict):
        if gen != self._generation or self._engine is None:
            return

        if kind == "manifest_parsed":
            self.quality_label = height_label(self._engine.rendition_height())
            try:
                self._engine.play()
            except Exception as e:
                self.event.emit(PlaybackEvent(PlaybackEventType.FATAL_ERROR, gen, message=f"Lecture refusée: {e}"))
                return
            self.event.emit(PlaybackEvent(PlaybackEventType.MANIFEST_PARSED, gen, quality_label=self.quality_label))
        elif kind == "error":
            if not payload.get("fatal", True):
                return
            details = payload.get("details") or "erreur inconnue"
            self.event.emit(PlaybackEvent(PlaybackEventType.FATAL_ERROR, gen, message=f"Erreur de lecture: {details}"))

    # -------------------------
    # Lecture native
    # -------------------------
    def _connect_native(self, signal, slot):
        signal.connect(slot)
        self._native_connections.append((signal, slot))

    def _attach_native(self, url: str, gen: int):
        el = self.media_element
        self._mode = MODE_NATIVE
        self._native_loaded = False
        self._connect_native(el.mediaStatusChanged, lambda status: self._on_native_status(gen, status))
        self._connect_native(el.errorOccurred, lambda *args: self._on_native_error(gen, *args))
        el.setSource(QtCore.QUrl(url))

    def _on_native_status(self, gen: int, status):
        if gen != self._generation:
            return
        name = getattr(status, "name", str(status))
        if name in ("LoadedMedia", "BufferedMedia") and not self._native_loaded:
            self._native_loaded = True
            self.event.emit(PlaybackEvent(PlaybackEventType.LOADED_DATA, gen))
            self.media_element.play()
        elif name == "InvalidMedia":
            self.event.emit(PlaybackEvent(PlaybackEventType.NATIVE_ERROR, gen, message="Échec du chargement du flux"))

    def _on_native_error(self, gen: int, error=None, error_string: str = ""):
        if gen != self._generation:
            return
        if getattr(error, "name", "") == "NoError":
            return
        self.event.emit(PlaybackEvent(
            PlaybackEventType.NATIVE_ERROR,
            gen,
            message=error_string or "Échec du chargement du flux",
        ))

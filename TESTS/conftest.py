from __future__ import annotations

import enum
import json

import pytest
from PySide6 import QtCore

from core.catalog_cache import CatalogCache
from core.config import AppConfig

# Fixtures partagées : application Qt sans fenêtre, faux lecteur/moteur, catalogue en mémoire.

CATALOG_DOC = {
    "categories": [
        {
            "id": "news",
            "name": "News",
            "sortOrder": 1,
            "channels": [
                {
                    "id": "news-bbc",
                    "name": "BBC World HD",
                    "urls": ["https://a.example/bbc.m3u8", "http://b.example/bbc.m3u8"],
                    "description": "international",
                    "tags": ["english"],
                },
                {"id": "news-cgtn", "name": "CGTN", "url": "http://c.example/cgtn.flv"},
            ],
        },
        {
            "id": "sports",
            "name": "Sports",
            "sortOrder": 0,
            "channels": [
                {"id": "sports-cctv5", "name": "CCTV5 1080p", "urls": ["rtmp://d.example/live/cctv5"]},
                {"name": "sans url", "urls": []},
            ],
        },
    ]
}


class MediaStatus(enum.Enum):
    NoMedia = 0
    LoadingMedia = 1
    LoadedMedia = 2
    BufferedMedia = 3
    InvalidMedia = 4


class MediaError(enum.Enum):
    NoError = 0
    ResourceError = 1
    FormatError = 2


class FakeMediaElement(QtCore.QObject):
    """Mêmes signaux/méthodes que QMediaPlayer, sans backend multimédia."""

    mediaStatusChanged = QtCore.Signal(object)
    errorOccurred = QtCore.Signal(object, str)

    def __init__(self):
        super().__init__()
        self.sources: list[str] = []
        self.play_calls = 0
        self.stop_calls = 0

    @property
    def source(self) -> str:
        return self.sources[-1] if self.sources else ""

    def setSource(self, url):
        self.sources.append(url.toString())

    def play(self):
        self.play_calls += 1

    def stop(self):
        self.stop_calls += 1


class FakeEngine:
    def __init__(self, emit, height: int = 720, fail_on_attach: bool = False):
        self.emit = emit
        self.height = height
        self.fail_on_attach = fail_on_attach
        self.loaded = ""
        self.attached_to = None
        self.played = False
        self.destroyed = False

    def load_source(self, url):
        self.loaded = url

    def attach_media(self, media_element):
        if self.fail_on_attach:
            raise RuntimeError("surface indisponible")
        self.attached_to = media_element

    def rendition_height(self):
        return self.height

    def play(self):
        self.played = True

    def destroy(self):
        self.destroyed = True


class EngineFactory:
    """Fabrique qui garde toutes les instances créées (la dernière = l'active)."""

    def __init__(self, **kwargs):
        self.kwargs = kwargs
        self.engines: list[FakeEngine] = []

    def __call__(self, emit):
        engine = FakeEngine(emit, **self.kwargs)
        self.engines.append(engine)
        return engine

    @property
    def last(self) -> FakeEngine:
        return self.engines[-1]


@pytest.fixture(scope="session")
def qapp():
    return QtCore.QCoreApplication.instance() or QtCore.QCoreApplication([])


@pytest.fixture
def media(qapp):
    return FakeMediaElement()


@pytest.fixture
def engine_factory():
    return EngineFactory()


@pytest.fixture
def catalog_text():
    return json.dumps(CATALOG_DOC, ensure_ascii=False)


@pytest.fixture
def cache(catalog_text):
    return CatalogCache(lambda: catalog_text, ttl_s=300, log=lambda *a, **k: None)


@pytest.fixture
def cfg(tmp_path):
    return AppConfig(catalog_source=str(tmp_path / "live.json"))


@pytest.fixture
def client(cfg, cache):
    from web.server import create_app

    app = create_app(cfg, cache=cache, log=lambda *a, **k: None)
    app.config["TESTING"] = True
    return app.test_client()


@pytest.fixture(autouse=True)
def _reset_cache_singleton():
    yield
    CatalogCache.reset_instance()

from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import Callable, List, Optional

import requests

from .logs import LogFn, resolve_log
from .models import Category, CatalogSnapshot
from .playlist import parse_any

# Cache process-wide du catalogue parsé : TTL, invalidation forcée, rechargement "single-flight".

DEFAULT_TTL_S = 300

Loader = Callable[[], str]
Parser = Callable[[str], List[Category]]


def load_source_text(location: str, timeout: float = 15.0) -> str:
    """
    Lit la source de référence du catalogue : chemin local ou URL http(s).
    Lève en cas d'échec (fichier absent, statut HTTP >= 400, réseau KO).
    """
    loc = (location or "").strip()
    if loc.lower().startswith(("http://", "https://")):
        r = requests.get(loc, timeout=timeout, headers={"User-Agent": "Mozilla/5.0"})
        r.raise_for_status()
        r.encoding = r.encoding or "utf-8"
        return r.text
    return Path(loc).read_text(encoding="utf-8-sig")


class CatalogCache:
    """
    Singleton explicite : créé au premier `instance()` (ou via `configure()`),
    vidé par `invalidate()`. Un snapshot publié n'est jamais modifié, seul
    l'échange recharger-et-remplacer est protégé par un verrou.
    """

    _instance: Optional["CatalogCache"] = None
    _instance_lock = threading.Lock()

    def __init__(
        self,
        loader: Loader,
        ttl_s: float = DEFAULT_TTL_S,
        parser: Parser = parse_any,
        clock: Callable[[], float] = time.monotonic,
        log: LogFn | None = None,
    ):
        self._loader = loader
        self._parser = parser
        self._clock = clock
        self._log = resolve_log(log)
        self.ttl_s = float(ttl_s)

        self._snapshot: Optional[CatalogSnapshot] = None
        self._loaded_at: Optional[float] = None
        self._reload_lock = threading.Lock()
        self.reload_count = 0
        self._attempts = 0
        self._invalidations = 0

    # -------------------------
    # Singleton
    # -------------------------
    @classmethod
    def configure(cls, loader: Loader, ttl_s: float = DEFAULT_TTL_S, log: LogFn | None = None) -> "CatalogCache":
        with cls._instance_lock:
            cls._instance = cls(loader, ttl_s=ttl_s, log=log)
            return cls._instance

    @classmethod
    def instance(cls) -> "CatalogCache":
        with cls._instance_lock:
            if cls._instance is None:
                from .config import load_config

                cfg = load_config()
                cls._instance = cls(lambda: load_source_text(cfg.catalog_source), ttl_s=cfg.cache_ttl_s)
            return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        with cls._instance_lock:
            cls._instance = None

    # -------------------------
    # API
    # -------------------------
    def _is_fresh(self) -> bool:
        if self._snapshot is None or self._loaded_at is None:
            return False
        return (self._clock() - self._loaded_at) < self.ttl_s

    def get(self) -> CatalogSnapshot:
        snap = self._snapshot
        if snap is not None and self._is_fresh():
            return snap

        attempt = self._attempts
        with self._reload_lock:
            # Un autre appelant a pu recharger pendant qu'on attendait le verrou.
            if self._is_fresh():
                return self._snapshot
            if self._attempts != attempt:
                # Tentative terminée pendant l'attente (même en échec) : on partage son résultat.
                return self._snapshot or CatalogSnapshot.empty()
            return self._reload()

    def invalidate(self) -> None:
        self._invalidations += 1
        self._loaded_at = None

    def refresh(self) -> CatalogSnapshot:
        self.invalidate()
        return self.get()

    @property
    def snapshot(self) -> Optional[CatalogSnapshot]:
        return self._snapshot

    def _reload(self) -> CatalogSnapshot:
        self.reload_count += 1
        epoch = self._invalidations
        try:
            text = self._loader()
            categories = self._parser(text)
        except Exception as e:
            self._log(f"Catalogue: rechargement KO ({type(e).__name__}: {e})", "WARNING")
            return self._snapshot or CatalogSnapshot.empty()
        finally:
            self._attempts += 1

        snap = CatalogSnapshot(categories=tuple(categories), loaded_at=time.time())
        self._snapshot = snap
        # invalidate() pendant le chargement : ce snapshot est publié mais déjà périmé.
        self._loaded_at = self._clock() if epoch == self._invalidations else None
        self._log(f"Catalogue: {len(snap.categories)} catégories, {snap.channel_count} chaînes chargées.")
        return snap

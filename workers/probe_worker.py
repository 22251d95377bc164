from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Iterable

import requests
from PySide6 import QtCore

# Vérification de vie des URLs (HEAD borné) + worker Qt qui teste toutes les sources d'une chaîne.

DEFAULT_TIMEOUT_S = 5.0
USER_AGENT = "Mozilla/5.0"


def validate_channel_url(url: str, timeout_s: float = DEFAULT_TIMEOUT_S) -> bool:
    """HEAD borné ; dépassement du délai ou erreur réseau = "non valide", jamais une exception."""
    try:
        r = requests.head(url, timeout=timeout_s, allow_redirects=True, headers={"User-Agent": USER_AGENT})
        return r.ok
    except requests.exceptions.RequestException:
        return False


def inspect_source(url: str, timeout_s: float = DEFAULT_TIMEOUT_S) -> dict:
    """Détail d'un HEAD sur une source de playlist : statut, type et taille annoncés."""
    try:
        r = requests.head(url, timeout=timeout_s, allow_redirects=True, headers={"User-Agent": USER_AGENT})
    except requests.exceptions.RequestException as e:
        return {"valid": False, "error": f"{type(e).__name__}: {e}"}

    length = r.headers.get("content-length")
    try:
        length = int(length) if length else None
    except ValueError:
        length = None
    return {
        "valid": r.ok,
        "status": r.status_code,
        "contentType": r.headers.get("content-type"),
        "contentLength": length,
    }


def _probe_url(url: str, timeout_s: float) -> str:
    """HEAD court puis GET partiel (1 Ko) : certains serveurs live refusent HEAD."""
    with requests.Session() as session:
        session.headers["User-Agent"] = USER_AGENT
        try:
            head = session.head(url, allow_redirects=True, timeout=(2, 2))
            if head.status_code < 400:
                return f"OK (HEAD {head.status_code})"
        except requests.exceptions.RequestException:
            pass

        try:
            with session.get(
                url,
                headers={"Range": "bytes=0-1023"},
                allow_redirects=True,
                timeout=(timeout_s, timeout_s),
                stream=True,
            ) as r:
                verdict = "OK" if r.status_code < 400 else "KO"
                return f"{verdict} (GET {r.status_code})"
        except requests.exceptions.Timeout:
            return "KO (timeout)"
        except requests.exceptions.InvalidURL:
            return "KO (invalid url)"
        except requests.exceptions.RequestException as e:
            return f"KO ({type(e).__name__})"


class ProbeWorker(QtCore.QObject):
    """Teste les URLs candidates d'une chaîne dans un QThread séparé, un statut par index de source."""

    progress = QtCore.Signal(int, str)  # index source, statut
    progress_count = QtCore.Signal(int, int)  # done, total
    finished = QtCore.Signal()

    def __init__(self, urls: Iterable[str], timeout_s: float = DEFAULT_TIMEOUT_S, max_workers: int = 4):
        super().__init__()
        self.urls = list(urls)
        self.timeout_s = float(timeout_s)
        self.max_workers = max(1, int(max_workers))
        self.results: dict[int, str] = {}
        self._stop = False

    def stop(self):
        self._stop = True

    def alive_indices(self) -> list[int]:
        return sorted(i for i, s in self.results.items() if s.startswith("OK"))

    def ranked_urls(self) -> list[str]:
        """Ordre de repli suggéré : sources vivantes d'abord, ordre d'origine conservé sinon."""
        alive = set(self.alive_indices())
        first = [u for i, u in enumerate(self.urls) if i in alive]
        return first + [u for i, u in enumerate(self.urls) if i not in alive]

    @QtCore.Slot()
    def run(self):
        """Déclenché par QThread.started (ou appelé directement)."""
        total = len(self.urls)
        done = 0
        try:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                pending = {}
                for idx, url in enumerate(u.strip() if isinstance(u, str) else "" for u in self.urls):
                    if self._stop:
                        break
                    if url:
                        pending[pool.submit(_probe_url, url, self.timeout_s)] = idx
                    else:
                        self._report(idx, "KO (no url)")

                for fut in as_completed(pending):
                    if self._stop:
                        pool.shutdown(wait=False, cancel_futures=True)
                        break
                    try:
                        status = fut.result()
                    except Exception as e:
                        status = f"KO ({type(e).__name__})"
                    self._report(pending[fut], status)
                    done += 1
                    self.progress_count.emit(done, total)
        finally:
            self.finished.emit()

    def _report(self, idx: int, status: str):
        self.results[idx] = status
        self.progress.emit(idx, status)

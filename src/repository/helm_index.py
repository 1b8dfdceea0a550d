"""Chart repository client reading a Helm-style ``index.yaml`` over HTTP.

The index lists every chart version with its metadata; chart dependencies
(``dependencies:`` entries) carry a version range, and a ``condition``,
``tags`` or ``optional: true`` marks them optional.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

from common.http_client import get_yaml
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from constants import Constants
from versioning.policy import HighestVersionPolicy, VersionPolicy

from .base import ArchiveRef, DependencySpec, LoadedPackage, LoadError, NotFoundError, Repository, RepositoryError

logger = logging.getLogger(__name__)

NAMESPACE_ANNOTATION = "chartsolve/namespace"


def _dependency_spec(raw: Dict[str, Any]) -> DependencySpec:
    name = raw.get("alias") or raw.get("name")
    if not name:
        raise LoadError(f"dependency without a name: {raw!r}")
    optional = bool(raw.get("optional") or raw.get("condition") or raw.get("tags"))
    return DependencySpec(
        name=str(name),
        version_range=str(raw.get("version") or "*"),
        optional=optional,
        namespace=raw.get("namespace"),
    )


class HelmIndexRepository(Repository):
    """Repository backed by ``<base_url>/index.yaml``; the index is fetched once."""

    def __init__(self, base_url: str, policy: Optional[VersionPolicy] = None):
        self.base_url = base_url.rstrip("/") + "/"
        self._policy = policy or HighestVersionPolicy()
        self._entries: Optional[Dict[str, List[Dict[str, Any]]]] = None
        self._lock = threading.Lock()

    def _index(self) -> Dict[str, List[Dict[str, Any]]]:
        with self._lock:
            if self._entries is not None:
                return self._entries
            url = urljoin(self.base_url, Constants.INDEX_FILE)
            status, _, doc = get_yaml(url)
            if status == 0:
                raise RepositoryError(f"cannot reach chart repository {safe_url(url)}")
            if status != 200:
                raise RepositoryError(f"chart repository {safe_url(url)} answered HTTP {status}")
            if not isinstance(doc, dict) or not isinstance(doc.get("entries"), dict):
                raise RepositoryError(f"{safe_url(url)} is not a chart repository index")
            self._entries = {
                str(name): [e for e in (versions or []) if isinstance(e, dict) and e.get("version")]
                for name, versions in doc["entries"].items()
            }
            if is_debug_enabled(logger):
                logger.debug(
                    "Chart index loaded",
                    extra=extra_context(
                        event="index_loaded",
                        component="helm_index",
                        action="fetch",
                        target=safe_url(url),
                        count=len(self._entries),
                    )
                )
            return self._entries

    def _entry(self, name: str, version: str) -> Optional[Dict[str, Any]]:
        for entry in self._index().get(name, []):
            if str(entry.get("version")) == version:
                return entry
        return None

    def locate(self, name: str, version_range: str) -> ArchiveRef:
        entries = [e for e in self._index().get(name, []) if not e.get("deprecated")]
        if not entries:
            raise NotFoundError(f"chart '{name}' not in {self.base_url}")
        result = self._policy.pick_raw(version_range, [str(e["version"]) for e in entries])
        if result.version is None:
            raise NotFoundError(result.error or f"no version of '{name}' matches '{version_range}'")
        entry = self._entry(name, result.version)
        urls = entry.get("urls") or []
        location = urljoin(self.base_url, urls[0]) if urls else ""
        return ArchiveRef(name=name, version=result.version, location=location)

    def load(self, ref: ArchiveRef) -> LoadedPackage:
        entry = self._entry(ref.name, ref.version)
        if entry is None:
            raise LoadError(f"'{ref.name}' {ref.version} missing from {self.base_url}")
        raw_deps = entry.get("dependencies") or []
        if not isinstance(raw_deps, list):
            raise LoadError(f"malformed dependencies for '{ref.name}' {ref.version}")
        annotations = entry.get("annotations") or {}
        return LoadedPackage(
            name=str(entry.get("name") or ref.name),
            version=str(entry["version"]),
            namespace=annotations.get(NAMESPACE_ANNOTATION),
            # the archive digest stands in for the payload bytes
            payload=entry.get("digest") or entry,
            dependencies=tuple(_dependency_spec(d) for d in raw_deps if isinstance(d, dict)),
        )

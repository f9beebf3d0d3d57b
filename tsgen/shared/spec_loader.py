"""Spec document loading with file and URL caching."""

from __future__ import annotations

import hashlib
import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

import requests
import yaml
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .errors import SpecLoadError
from .log import get_logger

logger = get_logger(__name__)

DEFAULT_CACHE_DIR: Final[Path] = Path(".tsgen-cache")
FETCH_TIMEOUT: Final[float] = 10.0
YAML_SUFFIXES: Final[frozenset[str]] = frozenset({".yml", ".yaml"})


@dataclass(frozen=True, slots=True)
class CacheKey:
    """Immutable cache key for spec files."""

    path: Path
    mtime: float
    size: int

    @classmethod
    def from_path(cls, path: Path) -> CacheKey:
        """Create a cache key from a file path."""
        stat = path.stat()
        return cls(
            path=path.resolve(),
            mtime=stat.st_mtime,
            size=stat.st_size,
        )


@dataclass
class CachedSpec:
    """A cached spec document with metadata."""

    data: dict[str, Any]
    key: CacheKey
    content_hash: str


class SpecCache:
    """In-process spec cache with automatic invalidation.

    Caches parsed spec files and invalidates an entry when the underlying
    file changes (based on mtime and size).
    """

    __slots__ = ("_cache", "_max_size")

    def __init__(self, max_size: int = 32) -> None:
        self._cache: dict[Path, CachedSpec] = {}
        self._max_size = max_size

    def get(self, path: Path) -> dict[str, Any]:
        """Get a spec from cache, loading it if necessary.

        Args:
            path: Path to the spec file.

        Returns:
            The parsed spec document.

        Raises:
            SpecLoadError: If the file is missing or invalid.
        """
        resolved = path.resolve()
        try:
            current_key = CacheKey.from_path(resolved)
        except OSError as e:
            raise SpecLoadError(f"Failed to read spec file: {e}", str(path)) from e

        cached = self._cache.get(resolved)
        if cached is not None and cached.key == current_key:
            return cached.data

        try:
            content = resolved.read_bytes()
        except OSError as e:
            raise SpecLoadError(f"Failed to read spec file: {e}", str(path)) from e
        data = parse_spec_text(
            content.decode("utf-8"),
            source=str(path),
            yaml_hint=resolved.suffix.lower() in YAML_SUFFIXES,
        )

        if len(self._cache) >= self._max_size:
            oldest = next(iter(self._cache))
            del self._cache[oldest]

        self._cache[resolved] = CachedSpec(
            data=data,
            key=current_key,
            content_hash=content_hash(content),
        )
        return data

    def invalidate(self, path: Path | None = None) -> None:
        """Invalidate cached specs.

        Args:
            path: Specific path to invalidate, or None to clear all.
        """
        if path is None:
            self._cache.clear()
        else:
            self._cache.pop(path.resolve(), None)

    def __len__(self) -> int:
        return len(self._cache)


class UrlCache:
    """On-disk cache of fetched spec text, keyed by URL."""

    def __init__(self, cache_dir: Path = DEFAULT_CACHE_DIR) -> None:
        self.cache_dir = cache_dir

    def _paths(self, url: str) -> tuple[Path, Path]:
        digest = hashlib.sha256(url.encode("utf-8")).hexdigest()[:16]
        return self.cache_dir / f"{digest}.spec", self.cache_dir / f"{digest}.meta.json"

    def get(self, url: str) -> str | None:
        spec_path, meta_path = self._paths(url)
        if not spec_path.exists() or not meta_path.exists():
            return None
        try:
            meta = json.loads(meta_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.debug("Ignoring unreadable cache metadata for %s", url)
            return None
        if meta.get("url") != url:
            return None
        text = spec_path.read_text(encoding="utf-8")
        if meta.get("content_hash") != content_hash(text.encode("utf-8")):
            logger.debug("Cached spec for %s failed its hash check", url)
            return None
        return text

    def put(self, url: str, text: str) -> None:
        spec_path, meta_path = self._paths(url)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        spec_path.write_text(text, encoding="utf-8")
        meta = {
            "url": url,
            "timestamp": int(time.time()),
            "content_hash": content_hash(text.encode("utf-8")),
        }
        meta_path.write_text(json.dumps(meta, indent=2), encoding="utf-8")

    def clear(self) -> None:
        if not self.cache_dir.exists():
            return
        for path in self.cache_dir.iterdir():
            if path.is_file():
                path.unlink()


def content_hash(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()[:16]


def is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


def parse_spec_text(text: str, *, source: str, yaml_hint: bool = False) -> dict[str, Any]:
    """Parse JSON or YAML spec text into a mapping.

    Args:
        text: Raw document text.
        source: Path or URL used in error messages.
        yaml_hint: Parse as YAML first when True.

    Raises:
        SpecLoadError: If the text is not a JSON/YAML mapping.
    """
    data: Any
    if yaml_hint:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise SpecLoadError(f"Invalid YAML: {e}", source) from e
    else:
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            # YAML is a superset of JSON, so fall back to it
            try:
                data = yaml.safe_load(text)
            except yaml.YAMLError as e:
                raise SpecLoadError(f"Invalid JSON/YAML: {e}", source) from e

    if not isinstance(data, dict):
        raise SpecLoadError("Spec root must be a mapping", source)
    return data


def fetch_url(url: str, *, timeout: float = FETCH_TIMEOUT) -> str:
    """Fetch a remote document.

    Uses urllib3 Retry via requests.adapters.HTTPAdapter.
    """
    session = requests.Session()
    retries = Retry(total=3, backoff_factor=0.5, status_forcelist=(500, 502, 503, 504))
    adapter = HTTPAdapter(max_retries=retries)
    session.mount("http://", adapter)
    session.mount("https://", adapter)

    try:
        resp = session.get(url, timeout=timeout)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise SpecLoadError(f"Failed to fetch spec: {e}", url) from e
    finally:
        session.close()
    return resp.text


def load_spec(
    source: str | Path,
    *,
    cache: SpecCache | None = None,
    url_cache: UrlCache | None = None,
    base_dir: Path | None = None,
) -> dict[str, Any]:
    """Load an OpenAPI document from a file path or URL.

    Args:
        source: File path or http(s) URL.
        cache: File cache to use; the global cache when None.
        url_cache: On-disk URL cache; URLs are always fetched when None.
        base_dir: Directory relative file paths are resolved against.

    Returns:
        The parsed document.

    Raises:
        SpecLoadError: If the document cannot be read or parsed.
    """
    raw = str(source)
    if is_url(raw):
        text = url_cache.get(raw) if url_cache is not None else None
        if text is None:
            logger.info("Fetching spec from %s", raw)
            text = fetch_url(raw)
            data = parse_spec_text(text, source=raw)
            if url_cache is not None:
                url_cache.put(raw, text)
            return data
        logger.debug("Using cached spec for %s", raw)
        return parse_spec_text(text, source=raw)

    path = Path(raw)
    if base_dir is not None and not path.is_absolute():
        path = base_dir / path
    if not path.exists():
        raise SpecLoadError("Spec file does not exist", str(path))
    return (cache or get_global_cache()).get(path)


# Global cache instance for convenience
_global_cache: SpecCache | None = None


def get_global_cache() -> SpecCache:
    """Get the global spec cache instance."""
    global _global_cache
    if _global_cache is None:
        _global_cache = SpecCache()
    return _global_cache

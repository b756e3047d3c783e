"""
The querycache module memoizes catalog queries on disk.

Parsing the catalog and evaluating a query per field per item is slow, while the answers never change
for a given catalog version. So every positive answer is written to a content-addressed file keyed by
the (query, subject) pair, and later lookups are served from disk. The store directory is versioned
by the catalog version, so upgrading the catalog starts a fresh cache. Entries are never invalidated
otherwise.

Negative outcomes (an unrecognized subject, a failed query) are never cached.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
from pathlib import Path

from romtag.catalog import CatalogProvider
from romtag.common import StorageError

logger = logging.getLogger(__name__)


def cache_key(query: str, subject: str) -> str:
    hasher = hashlib.sha256()
    hasher.update(query.encode())
    # NUL cannot occur in either component, so ("ab", "c") and ("a", "bc") hash differently.
    hasher.update(b"\0")
    hasher.update(subject.encode())
    return hasher.hexdigest()


def write_atomically(path: Path, content: str) -> None:
    """
    Write the file to a temporary location in the same directory and then move it into place, so
    that a concurrent reader never observes a partially written file.
    """
    try:
        fd, tmpname = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    except OSError as e:
        raise StorageError(f"Failed to create temporary file in {path.parent}: {e}") from e
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fp:
            fp.write(content)
        os.replace(tmpname, path)
    except OSError as e:
        raise StorageError(f"Failed to write {path}: {e}") from e
    finally:
        # On success the temporary file has already been renamed away.
        if os.path.exists(tmpname):
            os.unlink(tmpname)


class FileStore:
    """A persistent key/value store with one file per key."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create cache directory {directory}: {e}") from e

    def path(self, key: str) -> Path:
        return self.directory / key

    def get(self, key: str) -> str | None:
        try:
            with self.path(key).open("r", encoding="utf-8") as fp:
                return fp.read()
        except FileNotFoundError:
            return None

    def put(self, key: str, value: str) -> None:
        write_atomically(self.path(key), value)

    def __len__(self) -> int:
        return sum(1 for p in self.directory.iterdir() if p.is_file() and not p.name.startswith("."))


class QueryCache:
    def __init__(self, catalog: CatalogProvider, store: FileStore) -> None:
        self.catalog = catalog
        self.store = store
        self.hits = 0
        self.misses = 0

    def lookup(self, query: str, subject: str) -> str:
        """
        Return the answer to `query` for `subject`, asking the catalog only on a cache miss.

        Raises ItemNotRecognizedError and CatalogQueryError from the catalog unchanged; neither is
        cached.
        """
        key = cache_key(query, subject)
        cached = self.store.get(key)
        if cached is not None:
            self.hits += 1
            return cached
        self.misses += 1
        logger.debug(f"Query cache miss for {query!r} on {subject}")
        value = self.catalog.query(query, subject)
        self.store.put(key, value)
        return value

    def exists(self, query: str, subject: str) -> bool:
        """Evaluate a query as a predicate: true iff it has a non-empty answer."""
        return self.lookup(query, subject) != ""

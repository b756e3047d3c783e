"""
The catalog module wraps the MAME `-listxml` catalog behind a tiny query interface.

Everything downstream only depends on `CatalogProvider.query`: given a query expression and a
subject item, return a single textual result, or raise `ItemNotRecognizedError` when the subject
is not in the catalog, or `CatalogQueryError` when the query itself cannot be answered.

The XML implementation evaluates ElementTree paths relative to the subject's `<machine>` element.
A trailing `/@attr` step selects an attribute instead of the element text; a bare `@attr` selects
an attribute of the machine element itself. Multiple matches are joined with newlines, and no match
is the empty string (a positive, cacheable result).
"""

from __future__ import annotations

import functools
import logging
import time
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Protocol

from romtag.common import RomtagError, RomtagExpectedError

logger = logging.getLogger(__name__)

# Older catalogs call their entries <game>; newer ones call them <machine>.
ENTRY_TAGS = ["machine", "game"]


class CatalogError(RomtagExpectedError):
    pass


class ItemNotRecognizedError(RomtagError):
    pass


class CatalogQueryError(RomtagError):
    pass


class CatalogProvider(Protocol):
    @property
    def version(self) -> str: ...

    def item_ids(self) -> list[str]: ...

    def query(self, query: str, subject: str) -> str: ...


class XmlCatalog:
    """
    A catalog backed by a `-listxml` file. The file is large, so it is only parsed in full on the
    first query; the version is read from the root element alone.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    @functools.cached_property
    def version(self) -> str:
        try:
            with self.path.open("rb") as fp:
                for _, el in ET.iterparse(fp, events=("start",)):
                    return el.get("build") or "unknown"
        except FileNotFoundError as e:
            raise CatalogError(f"Catalog file not found ({self.path})") from e
        except ET.ParseError as e:
            raise CatalogError(f"Failed to parse catalog file {self.path}: {e}") from e
        return "unknown"

    @functools.cached_property
    def _machines(self) -> dict[str, ET.Element]:
        logger.info(f"Parsing catalog {self.path}")
        start = time.time()
        try:
            root = ET.parse(self.path).getroot()
        except FileNotFoundError as e:
            raise CatalogError(f"Catalog file not found ({self.path})") from e
        except ET.ParseError as e:
            raise CatalogError(f"Failed to parse catalog file {self.path}: {e}") from e
        machines: dict[str, ET.Element] = {}
        for tag in ENTRY_TAGS:
            for el in root.iter(tag):
                if name := el.get("name"):
                    machines[name] = el
        logger.debug(f"Loaded {len(machines)} catalog items in {time.time() - start:.2f}s")
        return machines

    def item_ids(self) -> list[str]:
        return sorted(self._machines)

    def query(self, query: str, subject: str) -> str:
        try:
            machine = self._machines[subject]
        except KeyError as e:
            raise ItemNotRecognizedError(f"{subject} is not in the catalog") from e

        path, attr = _split_query(query)
        try:
            elements = machine.findall(path)
        except (SyntaxError, KeyError, TypeError) as e:
            raise CatalogQueryError(f"Failed to evaluate query {query!r} for {subject}: {e}") from e

        values: list[str] = []
        for el in elements:
            value = el.get(attr) if attr is not None else "".join(el.itertext())
            if value is None:
                continue
            value = value.strip()
            if value:
                values.append(value)
        return "\n".join(values)


def _split_query(query: str) -> tuple[str, str | None]:
    if query.startswith("@"):
        return ".", query[1:]
    if "/@" in query:
        path, attr = query.rsplit("/@", 1)
        return path, attr
    return query, None

"""
The records module builds and stores one flat metadata record per catalog item.

A record is everything the tagger needs to know about an item, distilled from the catalog with a
handful of cached queries. Records are written once and then trusted forever: once a record exists,
nothing downstream needs to touch the catalog for that item again. A manual reset of the cache is
the only way to rebuild them.

On disk, a record is a file of newline-delimited `key:value` lines named after the item. Repeatable
keys (`class`, `device`, `romof`, `disk`) appear once per value; singleton keys are last-one-wins.
Lines with an empty value are never written.
"""

from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from romtag.catalog import ItemNotRecognizedError
from romtag.common import RomtagExpectedError, StorageError, uniq
from romtag.querycache import QueryCache, write_atomically

logger = logging.getLogger(__name__)

Status = Literal["good", "imperfect", "preliminary", "unknown"]
STATUSES: list[Status] = ["good", "imperfect", "preliminary", "unknown"]

Classification = Literal["bios", "device", "mechanical", "coin-operated"]
CLASSIFICATIONS: list[Classification] = ["bios", "device", "mechanical", "coin-operated"]

# The queries that populate a record. See the catalog module for the query syntax.
Q_DUMPED = "rom[@sha1]/@name"
Q_DESCRIPTION = "description"
Q_MANUFACTURER = "manufacturer"
Q_YEAR = "year"
Q_STATUS = "driver/@status"
Q_EMULATION = "driver/@emulation"
Q_ISBIOS = "@isbios"
Q_ISDEVICE = "@isdevice"
Q_ISMECHANICAL = "@ismechanical"
Q_COINS = "input/@coins"
Q_DEVICE_REFS = "device_ref/@name"
Q_ROMOF = "@romof"
Q_CLONEOF = "@cloneof"
Q_SAMPLEOF = "@sampleof"
Q_DISKS = "disk[@sha1]/@name"

# romof chains are a few hops at most; anything longer is a broken catalog.
MAX_CHAIN_DEPTH = 8

# Inline HTML that sometimes leaks into descriptions. Only these tags are stripped, so that literal
# placeholders such as `<unknown>` survive.
MARKUP_REGEX = re.compile(
    r"</?(?:b|i|u|em|strong|br|sup|sub|span|font|small)\b[^>]*>",
    re.IGNORECASE,
)

SINGLETON_KEYS = ["description", "manufacturer", "year", "status", "emulation", "cloneof", "sampleof"]


class InvalidItemIdError(RomtagExpectedError):
    pass


def valid_item_id(item_id: str) -> bool:
    """Item ids double as file names in the record store."""
    return bool(item_id) and "/" not in item_id and not item_id.startswith(".")


@dataclass(frozen=True)
class MetadataRecord:
    id: str
    description: str | None = None
    manufacturer: str | None = None
    year: str | None = None
    status: Status = "unknown"
    emulation: Status = "unknown"
    classification: list[Classification] = field(default_factory=list)
    device_refs: list[str] = field(default_factory=list)
    bios_chain: list[str] = field(default_factory=list)
    parent: str | None = None
    sample_parent: str | None = None
    disks: list[str] = field(default_factory=list)

    def dump(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "manufacturer": self.manufacturer,
            "year": self.year,
            "status": self.status,
            "emulation": self.emulation,
            "classification": self.classification,
            "device_refs": self.device_refs,
            "bios_chain": self.bios_chain,
            "parent": self.parent,
            "sample_parent": self.sample_parent,
            "disks": self.disks,
        }


def serialize_record(r: MetadataRecord) -> str:
    lines: list[str] = []

    def emit(key: str, value: str | None) -> None:
        if value:
            lines.append(f"{key}:{value}")

    emit("description", r.description)
    emit("manufacturer", r.manufacturer)
    emit("year", r.year)
    emit("status", r.status)
    emit("emulation", r.emulation)
    for c in r.classification:
        emit("class", c)
    for d in r.device_refs:
        emit("device", d)
    for b in r.bios_chain:
        emit("romof", b)
    emit("cloneof", r.parent)
    emit("sampleof", r.sample_parent)
    for disk in r.disks:
        emit("disk", disk)
    return "".join(line + "\n" for line in lines)


def parse_record(item_id: str, text: str) -> MetadataRecord:
    singletons: dict[str, str] = {}
    repeated: dict[str, list[str]] = {"class": [], "device": [], "romof": [], "disk": []}
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if not sep or not value:
            continue
        if key in repeated:
            repeated[key].append(value)
        elif key in SINGLETON_KEYS:
            singletons[key] = value
        else:
            logger.debug(f"Ignoring unknown key {key} in record {item_id}")
    return MetadataRecord(
        id=item_id,
        description=singletons.get("description"),
        manufacturer=singletons.get("manufacturer"),
        year=singletons.get("year"),
        status=_normalize_status(singletons.get("status")),
        emulation=_normalize_status(singletons.get("emulation")),
        classification=[c for c in CLASSIFICATIONS if c in repeated["class"]],
        device_refs=uniq(repeated["device"]),
        bios_chain=uniq(repeated["romof"]),
        parent=singletons.get("cloneof"),
        sample_parent=singletons.get("sampleof"),
        disks=uniq(repeated["disk"]),
    )


class RecordStore:
    """One record file per item. Append-only: existing records are not rewritten unless forced."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create record directory {directory}: {e}") from e

    def path(self, item_id: str) -> Path:
        if not valid_item_id(item_id):
            raise InvalidItemIdError(f"{item_id!r} is not a valid item identifier")
        return self.directory / item_id

    def exists(self, item_id: str) -> bool:
        return self.path(item_id).is_file()

    def get(self, item_id: str) -> MetadataRecord | None:
        try:
            with self.path(item_id).open("r", encoding="utf-8") as fp:
                return parse_record(item_id, fp.read())
        except FileNotFoundError:
            return None

    def put(self, record: MetadataRecord, force: bool = False) -> bool:
        path = self.path(record.id)
        if path.exists() and not force:
            logger.debug(f"No-Op: Record for {record.id} already exists")
            return False
        write_atomically(path, serialize_record(record))
        return True

    def list_ids(self) -> list[str]:
        return sorted(p.name for p in self.directory.iterdir() if p.is_file() and not p.name.startswith("."))


def build_record(
    cache: QueryCache,
    store: RecordStore,
    item_id: str,
    force: bool = False,
) -> MetadataRecord | None:
    """
    Query the catalog (through the cache) for everything we need to know about an item and persist
    the result as a record. Returns None, writing nothing, for items that cannot have a record; each
    such skip is logged as a warning.

    A CatalogQueryError past the initial dumped check propagates to the caller; nothing is written
    for the item in that case, as the record is only assembled in memory until every query succeeds.
    """
    if not valid_item_id(item_id):
        logger.warning(f"Skipping {item_id!r}: not a valid item identifier")
        return None
    try:
        dumped = cache.exists(Q_DUMPED, item_id)
    except ItemNotRecognizedError:
        logger.warning(f"Skipping {item_id}: not found in the catalog")
        return None
    if not dumped:
        logger.warning(f"Skipping {item_id}: no dumped ROMs")
        return None

    classification: list[Classification] = []
    if cache.lookup(Q_ISBIOS, item_id) == "yes":
        classification.append("bios")
    if cache.lookup(Q_ISDEVICE, item_id) == "yes":
        classification.append("device")
    if cache.lookup(Q_ISMECHANICAL, item_id) == "yes":
        classification.append("mechanical")
    if _has_coin_slots(cache.lookup(Q_COINS, item_id)):
        classification.append("coin-operated")

    device_refs = [
        d for d in sorted(set(_lines(cache.lookup(Q_DEVICE_REFS, item_id)))) if _is_dumped(cache, d)
    ]

    record = MetadataRecord(
        id=item_id,
        description=_sanitize_text(cache.lookup(Q_DESCRIPTION, item_id)),
        manufacturer=_sanitize_text(cache.lookup(Q_MANUFACTURER, item_id)),
        year=_sanitize_text(cache.lookup(Q_YEAR, item_id)),
        status=_normalize_status(cache.lookup(Q_STATUS, item_id)),
        emulation=_normalize_status(cache.lookup(Q_EMULATION, item_id)),
        classification=classification,
        device_refs=device_refs,
        bios_chain=_walk_bios_chain(cache, item_id),
        parent=cache.lookup(Q_CLONEOF, item_id) or None,
        sample_parent=cache.lookup(Q_SAMPLEOF, item_id) or None,
        disks=sorted(set(_lines(cache.lookup(Q_DISKS, item_id)))),
    )
    store.put(record, force=force)
    logger.info(f"Built record for {item_id}")
    return record


def _walk_bios_chain(cache: QueryCache, item_id: str) -> list[str]:
    """
    Follow romof links starting from the item. Undumped links are not recorded, but we keep walking
    past them, as the firmware further up the chain is still required.
    """
    chain: list[str] = []
    seen = {item_id}
    link = cache.lookup(Q_ROMOF, item_id)
    for _ in range(MAX_CHAIN_DEPTH):
        if not link or link in seen:
            break
        seen.add(link)
        try:
            if cache.exists(Q_DUMPED, link):
                chain.append(link)
            else:
                logger.debug(f"Skipping undumped romof link {link} of {item_id}")
            link = cache.lookup(Q_ROMOF, link)
        except ItemNotRecognizedError:
            logger.debug(f"Stopping romof chain of {item_id} at unknown item {link}")
            break
    return chain


def _is_dumped(cache: QueryCache, item_id: str) -> bool:
    try:
        return cache.exists(Q_DUMPED, item_id)
    except ItemNotRecognizedError:
        return False


def _has_coin_slots(value: str) -> bool:
    for line in _lines(value):
        try:
            if int(line) > 0:
                return True
        except ValueError:
            continue
    return False


def _lines(value: str) -> list[str]:
    return [x for x in value.splitlines() if x]


def _sanitize_text(value: str) -> str | None:
    value = MARKUP_REGEX.sub("", value)
    value = html.unescape(value)
    # Records are line-oriented, so collapse all whitespace, newlines included.
    return " ".join(value.split()) or None


def _normalize_status(value: str | None) -> Status:
    if not value:
        return "unknown"
    value = value.strip().lower()
    for s in STATUSES:
        if s == value:
            return s
    return "unknown"

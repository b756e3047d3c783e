"""
The dependencies module decides, for one record, which of its dependencies are on disk.

Every call takes an explicit ScanContext (the item being processed, the directories to look in, and
whether to look at all) rather than reading ambient state.

Presence rules:

- devices, BIOS chain entries and the parent are archives (files with one of the configured ROM
  extensions) in the scan directory;
- disks are files of any extension in a subdirectory named after the parent or after the item;
- samples are archives or directories in the sample directory, only checked if one was given.

When dependency checking is disabled, nothing is looked up and every dependency is reported as
unverified (`present=None`), which the tagger treats as present.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from romtag.records import MetadataRecord

logger = logging.getLogger(__name__)

DependencyKind = Literal["device", "bios", "parent", "disk", "sample"]

# Labels are passed to the label storage as comma-joined batches, so a label can never carry a
# literal comma.
COMMA_PLACEHOLDER = ":comma:"


def escape_identifier(identifier: str) -> str:
    return identifier.replace(",", COMMA_PLACEHOLDER)


@dataclass(frozen=True)
class DirectoryListing:
    # (stem, lowercased extension without the dot) of every file.
    files: frozenset[tuple[str, str]]
    stems: frozenset[str]
    dirs: frozenset[str]


@dataclass
class ScanContext:
    item_id: str
    scan_dir: Path
    sample_dir: Path | None = None
    check_dependencies: bool = False
    # Extensions (without the dot) that count as archives.
    rom_extensions: list[str] = field(default_factory=lambda: ["zip", "7z"])
    # Shared by every per-item context derived from the same run, so that each directory is listed
    # at most once.
    listings: dict[Path, DirectoryListing] = field(default_factory=dict, repr=False)

    def for_item(self, item_id: str) -> ScanContext:
        return dataclasses.replace(self, item_id=item_id)

    def listing(self, directory: Path) -> DirectoryListing:
        try:
            return self.listings[directory]
        except KeyError:
            listing = _list_directory(directory)
            self.listings[directory] = listing
            return listing

    def has_archive(self, directory: Path, stem: str) -> bool:
        files = self.listing(directory).files
        return any((stem, ext) in files for ext in self.rom_extensions)

    def has_file(self, directory: Path, stem: str) -> bool:
        return stem in self.listing(directory).stems

    def has_dir(self, directory: Path, name: str) -> bool:
        return name in self.listing(directory).dirs


@dataclass(frozen=True)
class ResolvedDependency:
    kind: DependencyKind
    identifier: str
    # None when presence was not verified.
    present: bool | None

    @property
    def missing(self) -> bool:
        return self.present is False


def resolve_dependencies(ctx: ScanContext, record: MetadataRecord) -> list[ResolvedDependency]:
    """
    Resolve every dependency of the record to present, missing, or unverified. The result is
    deduplicated on (kind, identifier) and ordered: devices, BIOS chain, parent, disks, sample.
    """
    resolved: list[ResolvedDependency] = []
    seen: set[tuple[DependencyKind, str]] = set()

    def add(kind: DependencyKind, identifier: str, present: bool | None) -> None:
        if (kind, identifier) in seen:
            return
        seen.add((kind, identifier))
        resolved.append(ResolvedDependency(kind=kind, identifier=identifier, present=present))

    def archive_present(identifier: str) -> bool | None:
        if not ctx.check_dependencies:
            return None
        return ctx.has_archive(ctx.scan_dir, identifier)

    for device in record.device_refs:
        add("device", device, archive_present(device))

    # In a clone, the first romof link is usually the parent itself.
    for link in record.bios_chain:
        add("parent" if link == record.parent else "bios", link, archive_present(link))

    if record.parent:
        add("parent", record.parent, archive_present(record.parent))

    # A clone's disks may sit next to the parent's.
    disk_dirs = [ctx.scan_dir / d for d in [record.parent, ctx.item_id] if d]
    for disk in record.disks:
        name = escape_identifier(disk)
        present: bool | None = None
        if ctx.check_dependencies:
            present = any(ctx.has_file(d, name) or ctx.has_file(d, disk) for d in disk_dirs)
        add("disk", name, present)

    if record.sample_parent:
        sample_present: bool | None = None
        if ctx.check_dependencies and ctx.sample_dir is not None:
            # Sample sets come zipped or unpacked.
            sample = record.sample_parent
            sample_present = ctx.has_archive(ctx.sample_dir, sample) or ctx.has_dir(ctx.sample_dir, sample)
        add("sample", record.sample_parent, sample_present)

    for dep in resolved:
        if dep.missing:
            logger.warning(f"{ctx.item_id}: missing {dep.kind} {dep.identifier}")
    return resolved


def _list_directory(directory: Path) -> DirectoryListing:
    files: set[tuple[str, str]] = set()
    dirs: set[str] = set()
    try:
        with os.scandir(directory) as it:
            for e in it:
                if e.is_dir():
                    dirs.add(e.name)
                elif e.is_file():
                    p = Path(e.name)
                    files.add((p.stem, p.suffix.lower().lstrip(".")))
    except (FileNotFoundError, NotADirectoryError):
        pass
    return DirectoryListing(
        files=frozenset(files),
        stems=frozenset(stem for stem, _ in files),
        dirs=frozenset(dirs),
    )

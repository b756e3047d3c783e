"""
The scan module ties the pieces together: it builds records for catalog items, and walks a scan
directory to bring each archive's labels in line with its record.

Processing is strictly sequential and in sorted order, so that logs and output are the same from one
run to the next.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from send2trash import send2trash

from romtag.catalog import CatalogProvider, CatalogQueryError
from romtag.config import Config
from romtag.dependencies import ScanContext, resolve_dependencies
from romtag.labels import LabelStorage, reconcile_labels
from romtag.querycache import FileStore, QueryCache
from romtag.records import MetadataRecord, RecordStore, build_record, valid_item_id
from romtag.tags import compute_tags, known_vocabulary, serialize_tags

logger = logging.getLogger(__name__)


@dataclass
class TagResult:
    path: Path
    item_id: str
    tags: list[str]
    applied: bool


def open_cache(c: Config, catalog: CatalogProvider) -> tuple[QueryCache, RecordStore]:
    base = c.versioned_cache_dir(catalog.version)
    logger.debug(f"Using cache directory {base}")
    return QueryCache(catalog, FileStore(base / "queries")), RecordStore(base / "records")


def reset_cache(c: Config, catalog: CatalogProvider) -> None:
    """Trash every query cache entry and record for the current catalog version."""
    base = c.versioned_cache_dir(catalog.version)
    if not base.exists():
        logger.info(f"No-Op: Cache directory {base} does not exist")
        return
    send2trash(base)
    logger.info(f"Trashed cache directory {base}")


def update_records(
    c: Config,
    catalog: CatalogProvider,
    # Leave as None to build every item in the catalog.
    item_ids: list[str] | None = None,
    force: bool = False,
) -> int:
    """
    Build the records of the given items, skipping items that already have one unless forced.
    Returns the number of records built. A failed query only fails the item it happened on.
    """
    cache, store = open_cache(c, catalog)
    item_ids = sorted(set(item_ids if item_ids is not None else catalog.item_ids()))
    built = 0
    for item_id in item_ids:
        if not valid_item_id(item_id):
            logger.warning(f"Skipping {item_id!r}: not a valid item identifier")
            continue
        if not force and store.exists(item_id):
            logger.debug(f"No-Op: Record for {item_id} already exists")
            continue
        try:
            if build_record(cache, store, item_id, force=force):
                built += 1
        except CatalogQueryError as e:
            logger.error(f"Failed to build record for {item_id}: {e}")
    logger.info(
        f"Built {built} records for {len(item_ids)} items, {len(store.list_ids())} records stored "
        f"(query cache: {len(cache.store)} entries, {cache.hits} hits, {cache.misses} misses)"
    )
    return built


def get_record(c: Config, catalog: CatalogProvider, item_id: str) -> MetadataRecord | None:
    """Fetch a record from the store, building it on a miss."""
    if not valid_item_id(item_id):
        logger.warning(f"Skipping {item_id!r}: not a valid item identifier")
        return None
    cache, store = open_cache(c, catalog)
    return store.get(item_id) or build_record(cache, store, item_id)


def list_scan_files(c: Config, scan_dir: Path) -> list[Path]:
    files = [
        p
        for p in scan_dir.iterdir()
        if p.is_file()
        and not p.name.startswith(".")
        and p.suffix.lower().lstrip(".") in c.rom_extensions
    ]
    return sorted(files, key=lambda p: p.name)


def tag_directory(
    c: Config,
    catalog: CatalogProvider,
    storage: LabelStorage,
    scan_dir: Path,
    sample_dir: Path | None = None,
    # Leave as None to use the configured default.
    check_dependencies: bool | None = None,
    reset_all: bool = False,
    dry_run: bool = False,
) -> list[TagResult]:
    """
    Compute the tags of every archive in the scan directory and reconcile the archive's labels with
    them. Archives whose item is unknown to the catalog, or has no dumped ROMs, are skipped with a
    warning. Returns a result for every archive that was processed.
    """
    if check_dependencies is None:
        check_dependencies = c.check_dependencies
    cache, store = open_cache(c, catalog)
    files = list_scan_files(c, scan_dir)
    logger.info(f"Found {len(files)} files to tag in {scan_dir}")

    base_ctx = ScanContext(
        item_id="",
        scan_dir=scan_dir,
        sample_dir=sample_dir,
        check_dependencies=check_dependencies,
        rom_extensions=c.rom_extensions,
    )
    results: list[TagResult] = []
    for path in files:
        ctx = base_ctx.for_item(path.stem)
        try:
            record = store.get(ctx.item_id) or build_record(cache, store, ctx.item_id)
        except CatalogQueryError as e:
            logger.error(f"Failed to build record for {ctx.item_id}: {e}")
            continue
        if record is None:
            logger.warning(f"Skipping {path.name}: unrecognized item {ctx.item_id}")
            continue

        resolved = resolve_dependencies(ctx, record)
        tags = serialize_tags(compute_tags(ctx, record, resolved))
        applied = reconcile_labels(
            storage,
            path,
            tags,
            known_vocabulary(resolved),
            reset_all=reset_all,
            dry_run=dry_run,
        )
        results.append(TagResult(path=path, item_id=ctx.item_id, tags=tags, applied=applied))

    logger.info(
        f"Tagged {sum(r.applied for r in results)}/{len(results)} files in {scan_dir} "
        f"(query cache: {cache.hits} hits, {cache.misses} misses)"
    )
    return results

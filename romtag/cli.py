"""
The cli module defines romtag's CLI interface. It does not have any domain logic of its own. It is
dedicated to parsing, resolving arguments, and delegating to the appropriate module.
"""

import json
import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path

import click

from romtag.common import RomtagExpectedError, set_verbose
from romtag.config import Config

logger = logging.getLogger(__name__)


class MissingScanDirError(RomtagExpectedError):
    pass


class RecordDoesNotExistError(RomtagExpectedError):
    pass


@dataclass
class Context:
    config: Config


# fmt: off
@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Emit verbose logging.")
@click.option("--config", "-c", type=click.Path(path_type=Path), help="Override the config file location.")
@click.pass_context
# fmt: on
def cli(cc: click.Context, verbose: bool, config: Path | None = None) -> None:
    """Label MAME ROM archives with their emulation status and dependencies."""
    cc.obj = Context(
        config=Config.parse(config_path_override=config),
    )
    if verbose:
        set_verbose("romtag")


@cli.group()
def config() -> None:
    """Utilites for configuring romtag."""


@config.command()
@click.argument("shell", type=click.Choice(["bash", "zsh", "fish"]), nargs=1)
def generate_completion(shell: str) -> None:
    """Generate a shell completion script."""
    os.environ["_ROMTAG_COMPLETE"] = f"{shell}_source"
    subprocess.run(["romtag"], env=os.environ)


@cli.group()
def records() -> None:
    """Manage the per-item metadata records."""


# fmt: off
@records.command()
@click.argument("items", type=str, nargs=-1)
@click.option("--force", "-f", is_flag=True, help="Rebuild records that already exist.")
@click.pass_obj
# fmt: on
def build(ctx: Context, items: tuple[str, ...], force: bool) -> None:
    """Build records for the given items (default: every item in the catalog)."""
    from romtag.catalog import XmlCatalog
    from romtag.scan import update_records
    catalog = XmlCatalog(ctx.config.catalog_path)
    built = update_records(ctx.config, catalog, list(items) or None, force=force)
    click.echo(f"Built {built} records")


@records.command(name="print")
@click.argument("item", type=str, nargs=1)
@click.pass_obj
def print1(ctx: Context, item: str) -> None:
    """Print a single record (in JSON)."""
    from romtag.catalog import XmlCatalog
    from romtag.scan import get_record
    record = get_record(ctx.config, XmlCatalog(ctx.config.catalog_path), item)
    if record is None:
        raise RecordDoesNotExistError(f"No record for {item}: not in the catalog or not dumped")
    click.echo(json.dumps(record.dump()))


@records.command()
@click.pass_obj
def reset(ctx: Context) -> None:
    """Trash the query cache and all records for the current catalog version."""
    from romtag.catalog import XmlCatalog
    from romtag.scan import reset_cache
    reset_cache(ctx.config, XmlCatalog(ctx.config.catalog_path))


# fmt: off
@cli.command()
@click.argument("scan_dir", type=click.Path(path_type=Path, file_okay=False, exists=True), required=False)
@click.option("--check-dependencies/--no-check-dependencies", "-d/-D", default=None, help="Check that dependencies exist on disk and tag incomplete sets (default: from the configuration file).")
@click.option("--sample-dir", "-s", type=click.Path(path_type=Path, file_okay=False), help="Check samples against this directory.")
@click.option("--reset", "-r", "reset_all", is_flag=True, help="Remove all existing labels, not just the ones romtag manages.")
@click.option("--dry-run", "-n", is_flag=True, help="Print the changes without applying them.")
@click.pass_obj
# fmt: on
def tag(
    ctx: Context,
    scan_dir: Path | None,
    check_dependencies: bool | None,
    sample_dir: Path | None,
    reset_all: bool,
    dry_run: bool,
) -> None:
    """Synchronize the labels of the archives in SCAN_DIR with the catalog."""
    from romtag.catalog import XmlCatalog
    from romtag.labels import find_label_storage
    from romtag.scan import tag_directory
    scan_dir = scan_dir or ctx.config.scan_dir
    if scan_dir is None:
        raise MissingScanDirError("No scan directory given and no scan_dir in the configuration file")
    # Before any work: a missing label tool is fatal outside of dry runs.
    storage = find_label_storage(ctx.config, dry_run=dry_run)
    results = tag_directory(
        ctx.config,
        XmlCatalog(ctx.config.catalog_path),
        storage,
        scan_dir,
        sample_dir=sample_dir or ctx.config.sample_dir,
        check_dependencies=check_dependencies,
        reset_all=reset_all,
        dry_run=dry_run,
    )
    for r in results:
        if not r.applied:
            continue
        prefix = "[dry run] " if dry_run else ""
        click.echo(f"{prefix}{r.path.name}: {', '.join(r.tags)}")

"""
The labels module reads and writes file labels, and reconciles a file's labels with the tags computed
for it.

Labels are stored by an external tool (the `tag` command line tool for Finder tags, by default). We
only ever touch labels in the managed vocabulary of a file, unless a full reset was requested, and we
only call the tool to mutate when the labels actually differ, so that a second run over an unchanged
directory performs no mutations at all.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from romtag.common import RomtagExpectedError
from romtag.config import Config

logger = logging.getLogger(__name__)


class LabelToolNotFoundError(RomtagExpectedError):
    pass


class LabelStorageError(RomtagExpectedError):
    pass


class LabelStorage(Protocol):
    def get_labels(self, path: Path) -> set[str]: ...

    def remove_labels(self, path: Path, labels: Iterable[str]) -> None: ...

    def add_labels(self, path: Path, labels: Iterable[str]) -> None: ...


class TagCommandStorage:
    """Label storage backed by the `tag` command line tool."""

    def __init__(self, command: str = "tag") -> None:
        self.command = command

    def get_labels(self, path: Path) -> set[str]:
        # Garrulous mode prints one label per line.
        out = self._run(["--list", "--no-name", "--garrulous", str(path)])
        return {line.strip() for line in out.splitlines() if line.strip()}

    def remove_labels(self, path: Path, labels: Iterable[str]) -> None:
        self._run(["--remove", _join_labels(labels), str(path)])

    def add_labels(self, path: Path, labels: Iterable[str]) -> None:
        self._run(["--add", _join_labels(labels), str(path)])

    def _run(self, args: list[str]) -> str:
        try:
            result = subprocess.run(
                [self.command, *args],
                capture_output=True,
                text=True,
                check=True,
            )
        except FileNotFoundError as e:
            raise LabelToolNotFoundError(f"Label tool {self.command} not found") from e
        except subprocess.CalledProcessError as e:
            raise LabelStorageError(
                f"{self.command} {' '.join(args)} failed with exit code {e.returncode}: {e.stderr.strip()}"
            ) from e
        return result.stdout


class NullLabelStorage:
    """Stands in for a missing label tool in dry-run mode: every file appears unlabeled."""

    def get_labels(self, path: Path) -> set[str]:
        return set()

    def remove_labels(self, path: Path, labels: Iterable[str]) -> None:
        raise LabelStorageError(f"Cannot remove labels from {path}: no label tool available")

    def add_labels(self, path: Path, labels: Iterable[str]) -> None:
        raise LabelStorageError(f"Cannot add labels to {path}: no label tool available")


def find_label_storage(c: Config, dry_run: bool = False) -> LabelStorage:
    if shutil.which(c.label_command):
        return TagCommandStorage(c.label_command)
    if dry_run:
        logger.warning(f"Label tool {c.label_command} not found, treating all files as unlabeled")
        return NullLabelStorage()
    raise LabelToolNotFoundError(
        f"Label tool {c.label_command} not found in PATH: install it, set label_command in the "
        "configuration file, or run with --dry-run"
    )


def reconcile_labels(
    storage: LabelStorage,
    path: Path,
    computed: list[str],
    known: set[str],
    reset_all: bool = False,
    dry_run: bool = False,
) -> bool:
    """
    Bring the managed labels of the file in line with the computed tags. Returns whether the labels
    needed to change. In dry-run mode, the comparison happens but nothing is mutated.

    If reset_all is set, every existing label is treated as managed and may be removed. Labels
    containing a comma are the exception: the label tool cannot address them, so they are left alone.
    """
    current = storage.get_labels(path)
    if reset_all:
        candidates = {t for t in current if "," not in t}
        for t in sorted(current - candidates):
            logger.warning(
                f"Cannot remove label {t!r} from {path.name}: labels with commas are not supported"
            )
    else:
        candidates = current & known
    wanted = set(computed)
    if wanted == candidates:
        logger.debug(f"No-Op: Labels of {path.name} are up to date")
        return False

    to_remove = sorted(candidates - wanted)
    to_add = [t for t in computed if t not in current]
    new_labels = sorted((current - set(to_remove)) | set(to_add))
    if dry_run:
        logger.info(f"[dry run] Would set labels of {path.name} to {', '.join(new_labels)}")
        return True

    if to_remove:
        storage.remove_labels(path, to_remove)
    if to_add:
        storage.add_labels(path, to_add)
    logger.info(f"Set labels of {path.name} to {', '.join(new_labels)}")
    return True


def _join_labels(labels: Iterable[str]) -> str:
    # The tool splits its argument on commas.
    labels = list(labels)
    for label in labels:
        if "," in label:
            raise LabelStorageError(
                f"Label {label!r} contains a comma and cannot be passed to the label tool"
            )
    return ",".join(labels)

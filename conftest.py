import logging
from collections.abc import Iterable, Iterator
from pathlib import Path

import pytest
from click.testing import CliRunner

from romtag.catalog import XmlCatalog
from romtag.config import Config
from romtag.querycache import FileStore, QueryCache
from romtag.records import RecordStore

logger = logging.getLogger(__name__)

TESTDATA = Path(__file__).resolve().parent / "testdata"
TEST_CATALOG = TESTDATA / "catalog.xml"
TEST_CATALOG_VERSION = "0.261 (mame0261)"


class MemoryLabelStorage:
    """Label storage that keeps labels in a dict and records every mutation."""

    def __init__(self) -> None:
        self.labels: dict[Path, set[str]] = {}
        self.mutations: list[tuple[str, Path, list[str]]] = []

    def get_labels(self, path: Path) -> set[str]:
        return set(self.labels.get(path, set()))

    def remove_labels(self, path: Path, labels: Iterable[str]) -> None:
        labels = list(labels)
        self.mutations.append(("remove", path, labels))
        self.labels[path] = self.labels.get(path, set()) - set(labels)

    def add_labels(self, path: Path, labels: Iterable[str]) -> None:
        labels = list(labels)
        self.mutations.append(("add", path, labels))
        self.labels[path] = self.labels.get(path, set()) | set(labels)


@pytest.fixture(autouse=True)
def debug_logging() -> None:
    logging.getLogger().setLevel(logging.DEBUG)


@pytest.fixture()
def isolated_dir() -> Iterator[Path]:
    with CliRunner().isolated_filesystem():
        yield Path.cwd()


@pytest.fixture()
def config(isolated_dir: Path) -> Config:
    cache_dir = isolated_dir / "cache"
    cache_dir.mkdir()

    scan_dir = isolated_dir / "roms"
    scan_dir.mkdir()

    return Config(
        catalog_path=TEST_CATALOG,
        cache_dir=cache_dir,
        scan_dir=scan_dir,
        sample_dir=None,
        check_dependencies=False,
        rom_extensions=["zip", "7z"],
        catalog_version=None,
        label_command="tag",
    )


@pytest.fixture()
def catalog(config: Config) -> XmlCatalog:
    return XmlCatalog(config.catalog_path)


@pytest.fixture()
def query_cache(config: Config, catalog: XmlCatalog) -> QueryCache:
    return QueryCache(catalog, FileStore(config.cache_dir / "queries"))


@pytest.fixture()
def record_store(config: Config) -> RecordStore:
    return RecordStore(config.cache_dir / "records")


@pytest.fixture()
def label_storage() -> MemoryLabelStorage:
    return MemoryLabelStorage()

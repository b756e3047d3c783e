from pathlib import Path

import pytest

from conftest import TEST_CATALOG_VERSION
from romtag.catalog import CatalogError, CatalogQueryError, ItemNotRecognizedError, XmlCatalog


def test_version(catalog: XmlCatalog) -> None:
    assert catalog.version == TEST_CATALOG_VERSION


def test_version_missing_file(isolated_dir: Path) -> None:
    with pytest.raises(CatalogError):
        _ = XmlCatalog(isolated_dir / "nope.xml").version


def test_malformed_catalog(isolated_dir: Path) -> None:
    path = isolated_dir / "broken.xml"
    path.write_text('<mame build="1"><machine name="a">')
    with pytest.raises(CatalogError):
        XmlCatalog(path).query("description", "a")


def test_item_ids(catalog: XmlCatalog) -> None:
    ids = catalog.item_ids()
    assert ids == sorted(ids)
    assert "game1" in ids
    assert "neogeo" in ids


def test_query_element_text(catalog: XmlCatalog) -> None:
    assert catalog.query("description", "neogeo") == "Neo-Geo MV-6F"
    assert catalog.query("year", "neogeo") == "1990"


def test_query_machine_attribute(catalog: XmlCatalog) -> None:
    assert catalog.query("@isbios", "neogeo") == "yes"
    assert catalog.query("@romof", "parent1") == "neogeo"
    # No match is a positive, empty answer.
    assert catalog.query("@isbios", "parent1") == ""


def test_query_child_attributes(catalog: XmlCatalog) -> None:
    assert catalog.query("device_ref/@name", "game1") == "dev1\ndev1\nnodumpdev\nunknowndev"
    assert catalog.query("driver/@status", "game1") == "imperfect"


def test_query_predicate(catalog: XmlCatalog) -> None:
    assert catalog.query("disk/@name", "game1") == "diskA,v2\nbaddisk"
    assert catalog.query("disk[@sha1]/@name", "game1") == "diskA,v2"
    assert catalog.query("rom[@sha1]/@name", "nodump") == ""


def test_query_unrecognized_item(catalog: XmlCatalog) -> None:
    with pytest.raises(ItemNotRecognizedError):
        catalog.query("description", "lalala")


def test_query_invalid_expression(catalog: XmlCatalog) -> None:
    with pytest.raises(CatalogQueryError):
        catalog.query("/description", "neogeo")

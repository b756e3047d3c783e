import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from conftest import TEST_CATALOG
from romtag.cli import MissingScanDirError, RecordDoesNotExistError, cli
from romtag.config import Config
from romtag.labels import LabelToolNotFoundError


def write_config(config: Config, path: Path, scan_dir: bool = True, extra: list[str] | None = None) -> Path:
    lines = [
        f'catalog_path = "{TEST_CATALOG}"',
        f'cache_dir = "{config.cache_dir}"',
        'label_command = "romtag-nonexistent-tool"',
    ]
    if scan_dir:
        lines.append(f'scan_dir = "{config.scan_dir}"')
    lines.extend(extra or [])
    path.write_text("\n".join(lines) + "\n")
    return path


def test_records_build_and_print(config: Config, isolated_dir: Path) -> None:
    cfg = write_config(config, isolated_dir / "config.toml")
    runner = CliRunner()

    res = runner.invoke(cli, ["-c", str(cfg), "records", "build", "game1", "nodump"])
    assert res.exit_code == 0, res.output
    assert "Built 1 records" in res.output

    res = runner.invoke(cli, ["-c", str(cfg), "records", "print", "game1"])
    assert res.exit_code == 0, res.output
    data = json.loads(res.output)
    assert data["id"] == "game1"
    assert data["status"] == "imperfect"
    assert data["device_refs"] == ["dev1"]
    assert data["disks"] == ["diskA,v2"]


def test_records_print_unknown_item(config: Config, isolated_dir: Path) -> None:
    cfg = write_config(config, isolated_dir / "config.toml")
    res = CliRunner().invoke(cli, ["-c", str(cfg), "records", "print", "nodump"])
    assert res.exit_code == 1
    assert isinstance(res.exception, RecordDoesNotExistError)


def test_tag_dry_run(config: Config, isolated_dir: Path) -> None:
    assert config.scan_dir is not None
    (config.scan_dir / "game1.zip").touch()
    (config.scan_dir / "dev1.zip").touch()
    cfg = write_config(config, isolated_dir / "config.toml")

    res = CliRunner().invoke(cli, ["-c", str(cfg), "tag", "--dry-run", "-d"])
    assert res.exit_code == 0, res.output
    assert "[dry run] dev1.zip: Device" in res.output
    assert (
        "[dry run] game1.zip: Imperfect, Device, +device:dev1, -disk:diskA:comma:v2, Incomplete"
        in res.output
    )


def test_tag_explicit_scan_dir(config: Config, isolated_dir: Path) -> None:
    other = isolated_dir / "other"
    other.mkdir()
    (other / "game2.zip").touch()
    cfg = write_config(config, isolated_dir / "config.toml", scan_dir=False)

    res = CliRunner().invoke(cli, ["-c", str(cfg), "tag", "-n", str(other)])
    assert res.exit_code == 0, res.output
    assert "[dry run] game2.zip: Preliminary, bios:biosa, bios:biosc" in res.output


def test_tag_without_scan_dir(config: Config, isolated_dir: Path) -> None:
    cfg = write_config(config, isolated_dir / "config.toml", scan_dir=False)
    res = CliRunner().invoke(cli, ["-c", str(cfg), "tag", "-n"])
    assert res.exit_code == 1
    assert isinstance(res.exception, MissingScanDirError)


def test_tag_requires_label_tool(config: Config, isolated_dir: Path) -> None:
    assert config.scan_dir is not None
    (config.scan_dir / "game1.zip").touch()
    cfg = write_config(config, isolated_dir / "config.toml")
    res = CliRunner().invoke(cli, ["-c", str(cfg), "tag"])
    assert res.exit_code == 1
    assert isinstance(res.exception, LabelToolNotFoundError)
    # Nothing was built before the failure.
    assert not any(config.cache_dir.iterdir())


@pytest.mark.parametrize("args", [["records", "reset"], ["-v", "records", "reset"]])
def test_records_reset_without_cache(config: Config, isolated_dir: Path, args: list[str]) -> None:
    cfg = write_config(config, isolated_dir / "config.toml")
    res = CliRunner().invoke(cli, ["-c", str(cfg), *args])
    assert res.exit_code == 0, res.output


def test_records_build_skips_invalid_items(config: Config, isolated_dir: Path) -> None:
    cfg = write_config(config, isolated_dir / "config.toml")
    runner = CliRunner()
    # `.hidden` sorts before `game1`.
    res = runner.invoke(cli, ["-c", str(cfg), "records", "build", ".hidden", "../x", "game1"])
    assert res.exit_code == 0, res.output
    assert "Built 1 records" in res.output

    res = runner.invoke(cli, ["-c", str(cfg), "records", "print", ".hidden"])
    assert res.exit_code == 1
    assert isinstance(res.exception, RecordDoesNotExistError)


@pytest.mark.parametrize("flag", ["--no-check-dependencies", "-D"])
def test_tag_disable_configured_dependency_checks(config: Config, isolated_dir: Path, flag: str) -> None:
    assert config.scan_dir is not None
    (config.scan_dir / "game1.zip").touch()
    cfg = write_config(config, isolated_dir / "config.toml", extra=["check_dependencies = true"])
    runner = CliRunner()

    res = runner.invoke(cli, ["-c", str(cfg), "tag", "-n"])
    assert res.exit_code == 0, res.output
    assert (
        "[dry run] game1.zip: Imperfect, Device, -device:dev1, -disk:diskA:comma:v2, Incomplete"
        in res.output
    )

    res = runner.invoke(cli, ["-c", str(cfg), "tag", "-n", flag])
    assert res.exit_code == 0, res.output
    assert "[dry run] game1.zip: Imperfect, Device, device:dev1, disk:diskA:comma:v2" in res.output

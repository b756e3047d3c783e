"""
The config module provides the config schema and parsing logic.

We take special care to optimize the configuration experience: romtag provides detailed errors when
an invalid configuration is detected, and emits warnings when unrecognized keys are found.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import appdirs
import tomllib

from romtag.common import RomtagExpectedError, sanitize_dirname

XDG_CONFIG_ROMTAG = Path(appdirs.user_config_dir("romtag"))
CONFIG_PATH = XDG_CONFIG_ROMTAG / "config.toml"

XDG_CACHE_ROMTAG = Path(appdirs.user_cache_dir("romtag"))

logger = logging.getLogger(__name__)


class ConfigNotFoundError(RomtagExpectedError):
    pass


class ConfigDecodeError(RomtagExpectedError):
    pass


class MissingConfigKeyError(RomtagExpectedError):
    pass


class InvalidConfigValueError(RomtagExpectedError, ValueError):
    pass


@dataclass(frozen=True)
class Config:
    # The MAME -listxml output that every record is built from.
    catalog_path: Path
    # Query cache and record store live in a subdirectory per catalog version.
    cache_dir: Path
    # Default directories for the tag command; both can be overridden on the command line.
    scan_dir: Path | None
    sample_dir: Path | None

    check_dependencies: bool
    # Extensions (without the dot) of the archives in the scan directory.
    rom_extensions: list[str]

    # Overrides the version read from the catalog's root element.
    catalog_version: str | None
    label_command: str

    @classmethod
    def parse(cls, config_path_override: Path | None = None) -> Config:
        # As we parse, delete consumed values from the data dictionary. If any are left over at the
        # end of the config, warn that unknown config keys were found.
        cfgpath = config_path_override or CONFIG_PATH
        try:
            with cfgpath.open("r") as fp:
                data = tomllib.loads(fp.read())
        except FileNotFoundError as e:
            raise ConfigNotFoundError(f"Configuration file not found ({cfgpath})") from e
        except tomllib.TOMLDecodeError as e:
            raise ConfigDecodeError(
                f"Failed to decode configuration file: invalid TOML: {e}"
            ) from e

        try:
            catalog_path = Path(data["catalog_path"]).expanduser()
            del data["catalog_path"]
        except KeyError as e:
            raise MissingConfigKeyError(
                f"Missing key catalog_path in configuration file ({cfgpath})"
            ) from e
        except (ValueError, TypeError) as e:
            raise InvalidConfigValueError(
                f"Invalid value for catalog_path in configuration file ({cfgpath}): must be a path"
            ) from e

        try:
            cache_dir = Path(data["cache_dir"]).expanduser()
            del data["cache_dir"]
        except KeyError:
            cache_dir = XDG_CACHE_ROMTAG
        except (TypeError, ValueError) as e:
            raise InvalidConfigValueError(
                f"Invalid value for cache_dir in configuration file ({cfgpath}): must be a path"
            ) from e

        try:
            scan_dir: Path | None = Path(data["scan_dir"]).expanduser()
            del data["scan_dir"]
        except KeyError:
            scan_dir = None
        except (TypeError, ValueError) as e:
            raise InvalidConfigValueError(
                f"Invalid value for scan_dir in configuration file ({cfgpath}): must be a path"
            ) from e

        try:
            sample_dir: Path | None = Path(data["sample_dir"]).expanduser()
            del data["sample_dir"]
        except KeyError:
            sample_dir = None
        except (TypeError, ValueError) as e:
            raise InvalidConfigValueError(
                f"Invalid value for sample_dir in configuration file ({cfgpath}): must be a path"
            ) from e

        try:
            check_dependencies = data["check_dependencies"]
            del data["check_dependencies"]
            if not isinstance(check_dependencies, bool):
                raise ValueError(f"Must be a bool: got {type(check_dependencies)}")
        except KeyError:
            check_dependencies = False
        except ValueError as e:
            raise InvalidConfigValueError(
                f"Invalid value for check_dependencies in configuration file ({cfgpath}): {e}"
            ) from e

        try:
            rom_extensions = data["rom_extensions"]
            del data["rom_extensions"]
            if not isinstance(rom_extensions, list):
                raise ValueError(f"Must be a list[str]: got {type(rom_extensions)}")
            for s in rom_extensions:
                if not isinstance(s, str):
                    raise ValueError(f"Each extension must be of type str: got {type(s)}")
        except KeyError:
            rom_extensions = ["zip", "7z"]
        except ValueError as e:
            raise InvalidConfigValueError(
                f"Invalid value for rom_extensions in configuration file ({cfgpath}): {e}"
            ) from e
        rom_extensions = [x.lower().lstrip(".") for x in rom_extensions]

        try:
            catalog_version = data["catalog_version"]
            del data["catalog_version"]
            if not isinstance(catalog_version, str) or not catalog_version:
                raise ValueError(f"Must be a non-empty str: got {catalog_version!r}")
        except KeyError:
            catalog_version = None
        except ValueError as e:
            raise InvalidConfigValueError(
                f"Invalid value for catalog_version in configuration file ({cfgpath}): {e}"
            ) from e

        try:
            label_command = data["label_command"]
            del data["label_command"]
            if not isinstance(label_command, str) or not label_command:
                raise ValueError(f"Must be a non-empty str: got {label_command!r}")
        except KeyError:
            label_command = "tag"
        except ValueError as e:
            raise InvalidConfigValueError(
                f"Invalid value for label_command in configuration file ({cfgpath}): {e}"
            ) from e

        if data:
            unrecognized_accessors: list[str] = []
            # Do a DFS over the data keys to assemble the map of unknown keys. State is a tuple of
            # ("accessor", node).
            dfs_state: deque[tuple[str, Any]] = deque([("", data)])
            while dfs_state:
                accessor, node = dfs_state.pop()
                if isinstance(node, dict):
                    for k, v in node.items():
                        child_accessor = k if not accessor else f"{accessor}.{k}"
                        dfs_state.append((child_accessor, v))
                    continue
                unrecognized_accessors.append(accessor)
            logger.warning(
                f"Unrecognized options found in configuration file: {', '.join(sorted(unrecognized_accessors))}"
            )

        return Config(
            catalog_path=catalog_path,
            cache_dir=cache_dir,
            scan_dir=scan_dir,
            sample_dir=sample_dir,
            check_dependencies=check_dependencies,
            rom_extensions=rom_extensions,
            catalog_version=catalog_version,
            label_command=label_command,
        )

    def versioned_cache_dir(self, catalog_version: str) -> Path:
        return self.cache_dir / sanitize_dirname(self.catalog_version or catalog_version)

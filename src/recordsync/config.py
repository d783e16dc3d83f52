"""Configuration loading and deterministic merge order.

Settings are merged from lowest to highest precedence: built-in defaults,
the ``[sync]`` table of a TOML file, command line overrides.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path

from recordsync.errors import ConfigError
from recordsync.fs import DEFAULT_IGNORES
from recordsync.hashing import ALGORITHMS
from recordsync.models import Repair

DEFAULT_DB_NAME = "recordsync.db"
KNOWN_KEYS = frozenset(
    {
        "directory",
        "db",
        "base_directory",
        "algorithm",
        "auto",
        "dry_run",
        "quiet",
        "ignores",
        "manual_only",
    }
)


@dataclass(slots=True, frozen=True)
class SyncConfig:
    """Fully merged settings of one sync run."""

    directory: Path
    db_path: Path
    base_directory: Path
    algorithm: str = "xxh128"
    auto: bool = False
    dry_run: bool = False
    quiet: bool = False
    ignores: tuple[str, ...] = tuple(sorted(DEFAULT_IGNORES))
    manual_only: frozenset[Repair] = frozenset()

    @property
    def default_answer(self) -> bool:
        """Answer used when not prompting: yes only in automatic mode."""
        return self.auto

    def to_public_dict(self) -> dict[str, object]:
        return {
            "directory": str(self.directory),
            "db": str(self.db_path),
            "base_directory": str(self.base_directory),
            "algorithm": self.algorithm,
            "auto": self.auto,
            "dry_run": self.dry_run,
            "quiet": self.quiet,
            "ignores": list(self.ignores),
            "manual_only": sorted(r.value for r in self.manual_only),
        }


@dataclass(slots=True, frozen=True)
class CliOverrides:
    """Optional command line settings applied at highest precedence."""

    directory: Path | None = None
    db_path: Path | None = None
    base_directory: Path | None = None
    algorithm: str | None = None
    auto: bool | None = None
    dry_run: bool | None = None
    quiet: bool | None = None


def load_config_file(config_path: Path) -> dict[str, object]:
    """Load the ``[sync]`` table of a TOML file."""
    try:
        with config_path.open("rb") as handle:
            payload = tomllib.load(handle)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

    table = payload.get("sync", {})
    if not isinstance(table, dict):
        raise ConfigError("Config section 'sync' must be a table.")
    unknown = sorted(set(table) - KNOWN_KEYS)
    if unknown:
        raise ConfigError(f"Unknown config field(s) in 'sync': {', '.join(unknown)}")
    return table


def _bool(value: object, name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"Config field 'sync.{name}' must be a boolean.")
    return value


def _path(value: object, name: str, relative_to: Path) -> Path:
    if not isinstance(value, str) or not value:
        raise ConfigError(f"Config field 'sync.{name}' must be a non-empty string.")
    path = Path(value).expanduser()
    return path if path.is_absolute() else relative_to / path


def _strings(value: object, name: str) -> tuple[str, ...]:
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ConfigError(f"Config field 'sync.{name}' must be a list of strings.")
    return tuple(value)


def _algorithm(value: object) -> str:
    if value not in ALGORITHMS:
        raise ConfigError(
            f"Unsupported checksum algorithm {value!r}; expected one of {', '.join(ALGORITHMS)}."
        )
    return value  # type: ignore[return-value]


def _repairs(value: object) -> frozenset[Repair]:
    repairs = set()
    for name in _strings(value, "manual_only"):
        try:
            repairs.add(Repair(name))
        except ValueError as e:
            raise ConfigError(f"Unknown repair {name!r} in 'sync.manual_only'.") from e
    return frozenset(repairs)


def load_config(
    config_path: Path | None = None, overrides: CliOverrides | None = None
) -> SyncConfig:
    """Build the effective config: defaults -> config file -> overrides.

    Relative paths in the config file are relative to the file's directory.
    """
    overrides = overrides or CliOverrides()
    payload: dict[str, object] = {}
    relative_to = Path.cwd()
    if config_path is not None:
        payload = load_config_file(config_path)
        relative_to = config_path.resolve().parent

    directory: Path | None = None
    if "directory" in payload:
        directory = _path(payload["directory"], "directory", relative_to)
    if overrides.directory is not None:
        directory = overrides.directory
    if directory is None:
        raise ConfigError("No directory to search given.")

    db_path = Path(DEFAULT_DB_NAME)
    if "db" in payload:
        db_path = _path(payload["db"], "db", relative_to)
    if overrides.db_path is not None:
        db_path = overrides.db_path

    base_directory = directory
    if "base_directory" in payload:
        base_directory = _path(payload["base_directory"], "base_directory", relative_to)
    if overrides.base_directory is not None:
        base_directory = overrides.base_directory

    algorithm = "xxh128"
    if "algorithm" in payload:
        algorithm = _algorithm(payload["algorithm"])
    if overrides.algorithm is not None:
        algorithm = _algorithm(overrides.algorithm)

    flags: dict[str, bool] = {}
    for name in ("auto", "dry_run", "quiet"):
        value = payload[name] if name in payload else False
        flags[name] = _bool(value, name)
        override = getattr(overrides, name)
        if override is not None:
            flags[name] = override

    if flags["auto"] and flags["dry_run"]:
        raise ConfigError("Automatic repair and dry run are mutually exclusive.")

    ignores = tuple(sorted(DEFAULT_IGNORES))
    if "ignores" in payload:
        ignores = _strings(payload["ignores"], "ignores")

    manual_only: frozenset[Repair] = frozenset()
    if "manual_only" in payload:
        manual_only = _repairs(payload["manual_only"])

    return SyncConfig(
        directory=directory.resolve(),
        db_path=db_path.resolve(),
        base_directory=base_directory.resolve(),
        algorithm=algorithm,
        auto=flags["auto"],
        dry_run=flags["dry_run"],
        quiet=flags["quiet"],
        ignores=ignores,
        manual_only=manual_only,
    )

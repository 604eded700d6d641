"""Project configuration loading for Pacer.

Reads `pacer.toml` and validates it. This is where durations are checked: the
limiter itself accepts whatever it is given.
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from pacer.errors import PacerConfigError

Mode = Literal["debounce", "throttle"]
MODES: tuple[Mode, ...] = ("debounce", "throttle")


@dataclass(frozen=True)
class LimiterConfig:
    mode: Mode
    delay_ms: int


@dataclass(frozen=True)
class WatchConfig:
    paths: list[str]
    suffixes: list[str]
    ignore_dirs: list[str]
    debounce_ms: int


@dataclass(frozen=True)
class PacerConfig:
    version: int
    limiter: LimiterConfig
    watch: WatchConfig


def default_config() -> PacerConfig:
    return PacerConfig(
        version=1,
        limiter=LimiterConfig(mode="debounce", delay_ms=300),
        watch=WatchConfig(
            paths=["."],
            suffixes=[],
            ignore_dirs=[".git", "__pycache__", ".venv"],
            debounce_ms=50,
        ),
    )


def find_project_root(start: Path) -> Path:
    """Walk upward from `start` (file or directory) looking for `pacer.toml`."""

    cur = start
    try:
        if cur.is_file():
            cur = cur.parent
    except OSError:
        cur = cur.parent

    cur = cur.resolve()
    while True:
        if (cur / "pacer.toml").is_file():
            return cur
        if cur.parent == cur:
            break
        cur = cur.parent

    raise PacerConfigError("Could not find pacer.toml by walking upward from start path.")


def _as_table(value: Any, *, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise PacerConfigError(f"Expected [{name}] to be a table.")
    return value


def _as_str_list(value: Any, *, name: str) -> list[str]:
    if not isinstance(value, list) or any(not isinstance(x, str) for x in value):
        raise PacerConfigError(f"Expected {name} to be a list of strings.")
    return list(value)


def _as_int(value: Any, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise PacerConfigError(f"Expected {name} to be an integer.")
    return value


def _as_str(value: Any, *, name: str) -> str:
    if not isinstance(value, str):
        raise PacerConfigError(f"Expected {name} to be a string.")
    return value


def validate_mode(value: str, *, name: str = "limiter.mode") -> Mode:
    if value not in MODES:
        raise PacerConfigError(f"Invalid {name}: {value!r} (expected one of {', '.join(MODES)}).")
    return value  # type: ignore[return-value]


def validate_delay_ms(value: int, *, name: str = "limiter.delay_ms") -> int:
    if value < 1:
        raise PacerConfigError(f"Invalid {name}: must be a positive number of milliseconds.")
    return value


def load_config(*, root: Path | None = None, config_path: Path | None = None) -> PacerConfig:
    """Load and validate `pacer.toml`.

    If neither `root` nor `config_path` are provided, the project root is
    discovered by walking upward from the current working directory.
    """

    if config_path is None:
        if root is None:
            root = find_project_root(Path.cwd())
        config_path = root / "pacer.toml"

    try:
        raw = config_path.read_bytes()
    except FileNotFoundError as e:
        raise PacerConfigError(f"Missing pacer.toml at: {config_path}") from e
    except OSError as e:
        raise PacerConfigError(f"Failed reading config file: {config_path}") from e

    try:
        data = tomllib.loads(raw.decode("utf-8"))
    except UnicodeDecodeError as e:
        raise PacerConfigError(f"Config is not valid UTF-8: {config_path}") from e
    except tomllib.TOMLDecodeError as e:
        raise PacerConfigError(f"Invalid TOML in {config_path}: {e}") from e

    version = data.get("version", None)
    if version is None:
        raise PacerConfigError("Missing required `version = 1` in pacer.toml.")
    version_i = _as_int(version, name="version")
    if version_i != 1:
        raise PacerConfigError(f"Unsupported config version: {version_i} (expected 1).")

    defaults = default_config()
    limiter_tbl = _as_table(data.get("limiter"), name="limiter")
    watch_tbl = _as_table(data.get("watch"), name="watch")

    if "mode" in limiter_tbl:
        mode = validate_mode(_as_str(limiter_tbl["mode"], name="limiter.mode"))
    else:
        mode = defaults.limiter.mode

    if "delay_ms" in limiter_tbl:
        delay_ms = validate_delay_ms(_as_int(limiter_tbl["delay_ms"], name="limiter.delay_ms"))
    else:
        delay_ms = defaults.limiter.delay_ms

    if "paths" in watch_tbl:
        paths = _as_str_list(watch_tbl["paths"], name="watch.paths")
    else:
        paths = defaults.watch.paths

    if "suffixes" in watch_tbl:
        suffixes = _as_str_list(watch_tbl["suffixes"], name="watch.suffixes")
    else:
        suffixes = defaults.watch.suffixes

    if "ignore_dirs" in watch_tbl:
        ignore_dirs = _as_str_list(watch_tbl["ignore_dirs"], name="watch.ignore_dirs")
    else:
        ignore_dirs = defaults.watch.ignore_dirs

    if "debounce_ms" in watch_tbl:
        watch_debounce_ms = _as_int(watch_tbl["debounce_ms"], name="watch.debounce_ms")
    else:
        watch_debounce_ms = defaults.watch.debounce_ms

    # Validation
    if not paths:
        raise PacerConfigError("Invalid config: watch.paths must not be empty.")

    if watch_debounce_ms < 0:
        raise PacerConfigError("Invalid config: watch.debounce_ms must be >= 0.")

    bad = [s for s in suffixes if not s.startswith(".")]
    if bad:
        raise PacerConfigError(
            f"Invalid config: watch.suffixes entries must start with '.': {', '.join(bad)}"
        )

    return PacerConfig(
        version=version_i,
        limiter=LimiterConfig(mode=mode, delay_ms=delay_ms),
        watch=WatchConfig(
            paths=paths,
            suffixes=suffixes,
            ignore_dirs=ignore_dirs,
            debounce_ms=watch_debounce_ms,
        ),
    )

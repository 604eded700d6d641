"""Filesystem change batches as a rate-limited value stream."""

from __future__ import annotations

import time
from collections.abc import AsyncIterator, Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any


@dataclass(frozen=True, slots=True)
class ChangeBatch:
    """A batch of relevant file changes, as submitted to the limiter."""

    changed_paths: frozenset[Path]
    timestamp: float


def check_watchfiles_available() -> None:
    """Raise ImportError with a helpful message if watchfiles is not installed."""
    import importlib

    try:
        importlib.import_module("watchfiles")
    except ImportError:
        raise ImportError(
            "watchfiles is required for watch mode. Install it with: pip install pacer[watch]"
        ) from None


def _dirs_under_root(p: Path, roots: list[Path]) -> tuple[str, ...] | None:
    """Directory parts of `p` below its closest root, or None if outside all roots."""
    best: Path | None = None
    for r in roots:
        if p.is_relative_to(r) and (best is None or len(r.parts) > len(best.parts)):
            best = r
    if best is None:
        return None
    return p.relative_to(best).parts[:-1]


def filter_changes(
    changed_paths: frozenset[Path],
    *,
    roots: Iterable[Path] = (),
    suffixes: Iterable[str] = (),
    ignore_dirs: Iterable[str] = (),
) -> frozenset[Path]:
    """Keep paths with a wanted suffix (any, if none given) outside ignored dirs.

    With `roots`, paths outside every root are dropped and only directories
    below the matching root count against `ignore_dirs`. Without roots the
    paths are taken as given.
    """
    root_list = list(roots)
    wanted = set(suffixes)
    ignored = set(ignore_dirs)
    kept: set[Path] = set()
    for p in changed_paths:
        if wanted and p.suffix not in wanted:
            continue
        if root_list:
            dirs = _dirs_under_root(p, root_list)
            if dirs is None:
                continue
        else:
            dirs = p.parts[:-1]
        if ignored.intersection(dirs):
            continue
        kept.add(p)
    return frozenset(kept)


async def run_watch_loop(
    *,
    changes_iter: AsyncIterator[set[tuple[Any, str]]],
    submit: Callable[[ChangeBatch], None],
    on_event: Callable[[str], None],
    roots: Iterable[Path] = (),
    suffixes: Iterable[str] = (),
    ignore_dirs: Iterable[str] = (),
) -> None:
    """Consume changes_iter, filter each batch, and submit what is left."""
    roots = tuple(roots)
    suffixes = tuple(suffixes)
    ignore_dirs = tuple(ignore_dirs)
    async for raw_changes in changes_iter:
        paths = frozenset(Path(p) for _, p in raw_changes)
        relevant = filter_changes(paths, roots=roots, suffixes=suffixes, ignore_dirs=ignore_dirs)
        if not relevant:
            continue

        names = ", ".join(str(p) for p in sorted(relevant))
        on_event(f"[watch] change detected: {names}")
        submit(ChangeBatch(changed_paths=relevant, timestamp=time.monotonic()))


def format_emission_json(batch: ChangeBatch, *, mode: str) -> dict[str, object]:
    """Format an emitted batch as a JSON-serializable dict."""
    return {
        "command": "watch",
        "mode": mode,
        "timestamp": round(batch.timestamp, 3),
        "changed_paths": sorted(str(p) for p in batch.changed_paths),
    }


def make_watchfiles_iter(
    watch_paths: list[Path],
    *,
    debounce_ms: int = 50,
) -> AsyncIterator[set[tuple[Any, str]]]:
    """Create an async iterator using watchfiles.awatch()."""
    import watchfiles  # type: ignore[import-untyped]

    return watchfiles.awatch(*watch_paths, debounce=debounce_ms)

"""Tests for pacer.watcher module."""

from __future__ import annotations

import asyncio
import sys
import types
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import pytest

from pacer.runtime import Pacer
from pacer.scheduler import AsyncioScheduler
from pacer.watcher import (
    ChangeBatch,
    filter_changes,
    format_emission_json,
    make_watchfiles_iter,
    run_watch_loop,
)

# ---------------------------------------------------------------------------
# Optional dependency check
# ---------------------------------------------------------------------------


def test_check_watchfiles_available_raises_when_missing(monkeypatch) -> None:
    """Should raise ImportError with a helpful install message."""
    monkeypatch.setitem(sys.modules, "watchfiles", None)

    from pacer.watcher import check_watchfiles_available

    with pytest.raises(ImportError, match="pip install pacer\\[watch\\]"):
        check_watchfiles_available()


def test_check_watchfiles_available_succeeds_when_installed(monkeypatch) -> None:
    fake = types.ModuleType("watchfiles")
    monkeypatch.setitem(sys.modules, "watchfiles", fake)

    from pacer.watcher import check_watchfiles_available

    check_watchfiles_available()  # no exception


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------


def test_filter_keeps_everything_without_rules() -> None:
    changed = frozenset({Path("/p/a.py"), Path("/p/b.md")})
    assert filter_changes(changed) == changed


def test_filter_by_suffix() -> None:
    changed = frozenset({Path("/p/a.py"), Path("/p/b.md"), Path("/p/c.json")})
    result = filter_changes(changed, suffixes=[".py", ".json"])
    assert result == frozenset({Path("/p/a.py"), Path("/p/c.json")})


def test_filter_excludes_ignored_dirs() -> None:
    changed = frozenset(
        {
            Path("/p/.git/index"),
            Path("/p/pkg/__pycache__/m.cpython-311.pyc"),
            Path("/p/pkg/m.py"),
        }
    )
    result = filter_changes(changed, ignore_dirs=[".git", "__pycache__"])
    assert result == frozenset({Path("/p/pkg/m.py")})


def test_filter_ignore_dirs_matches_directories_not_file_names() -> None:
    changed = frozenset({Path("/p/build")})
    assert filter_changes(changed, ignore_dirs=["build"]) == changed


def test_filter_ignore_dirs_only_counts_directories_below_root() -> None:
    root = Path("/home/u/build/app")
    changed = frozenset({Path("/home/u/build/app/src/main.py")})
    result = filter_changes(changed, roots=[root], ignore_dirs=["build"])
    assert result == changed


def test_filter_ignore_dirs_still_applies_inside_root() -> None:
    root = Path("/work/.venv/project")
    changed = frozenset(
        {
            Path("/work/.venv/project/app.py"),
            Path("/work/.venv/project/.venv/lib/site.py"),
        }
    )
    result = filter_changes(changed, roots=[root], ignore_dirs=[".venv"])
    assert result == frozenset({Path("/work/.venv/project/app.py")})


def test_filter_drops_paths_outside_roots() -> None:
    changed = frozenset({Path("/other/mod.py"), Path("/project/src/a.py")})
    result = filter_changes(changed, roots=[Path("/project")])
    assert result == frozenset({Path("/project/src/a.py")})


def test_filter_uses_closest_root() -> None:
    # /p/gen is watched as its own root; "gen" above it is not an ignored subdir.
    changed = frozenset({Path("/p/gen/x.py")})
    result = filter_changes(changed, roots=[Path("/p"), Path("/p/gen")], ignore_dirs=["gen"])
    assert result == changed


# ---------------------------------------------------------------------------
# Watch loop
# ---------------------------------------------------------------------------


async def _fake_changes(
    batches: list[set[tuple[Any, str]]],
) -> AsyncIterator[set[tuple[Any, str]]]:
    for batch in batches:
        yield batch


def test_watch_loop_submits_relevant_batches() -> None:
    submitted: list[ChangeBatch] = []

    async def run() -> None:
        await run_watch_loop(
            changes_iter=_fake_changes([{(1, "/src/a.py")}, {(2, "/src/readme.md")}]),
            submit=submitted.append,
            on_event=lambda msg: None,
            suffixes=[".py"],
        )

    asyncio.run(run())
    assert len(submitted) == 1
    assert submitted[0].changed_paths == frozenset({Path("/src/a.py")})


def test_watch_loop_emits_change_detected_message() -> None:
    messages: list[str] = []

    async def run() -> None:
        await run_watch_loop(
            changes_iter=_fake_changes([{(1, "/src/pkg/mod.py")}]),
            submit=lambda batch: None,
            on_event=messages.append,
        )

    asyncio.run(run())
    assert any("change detected" in m for m in messages)
    assert any("mod.py" in m for m in messages)


def test_watch_loop_through_debounce_emits_last_batch() -> None:
    emitted: list[ChangeBatch] = []

    async def run() -> None:
        pacer = Pacer.debounce(30, AsyncioScheduler(), emitted.append)
        await run_watch_loop(
            changes_iter=_fake_changes(
                [{(1, "/src/a.py")}, {(1, "/src/b.py")}, {(1, "/src/c.py")}]
            ),
            submit=pacer.submit,
            on_event=lambda msg: None,
        )
        await asyncio.sleep(0.15)

    asyncio.run(run())
    assert [b.changed_paths for b in emitted] == [frozenset({Path("/src/c.py")})]


def test_format_emission_json() -> None:
    batch = ChangeBatch(changed_paths=frozenset({Path("/b.py"), Path("/a.py")}), timestamp=1.23456)
    out = format_emission_json(batch, mode="throttle")
    assert out == {
        "command": "watch",
        "mode": "throttle",
        "timestamp": 1.235,
        "changed_paths": ["/a.py", "/b.py"],
    }


def test_watch_loop_anchors_ignore_dirs_on_roots() -> None:
    submitted: list[ChangeBatch] = []

    async def run() -> None:
        await run_watch_loop(
            changes_iter=_fake_changes([{(1, "/home/u/build/app/main.py")}]),
            submit=submitted.append,
            on_event=lambda msg: None,
            roots=[Path("/home/u/build/app")],
            ignore_dirs=["build"],
        )

    asyncio.run(run())
    assert [b.changed_paths for b in submitted] == [
        frozenset({Path("/home/u/build/app/main.py")})
    ]


def test_make_watchfiles_iter_passes_paths_and_debounce(monkeypatch) -> None:
    calls: list[tuple[tuple[Any, ...], dict[str, Any]]] = []
    sentinel = object()

    def fake_awatch(*paths: Any, **kwargs: Any) -> object:
        calls.append((paths, kwargs))
        return sentinel

    fake = types.ModuleType("watchfiles")
    fake.awatch = fake_awatch  # type: ignore[attr-defined]
    monkeypatch.setitem(sys.modules, "watchfiles", fake)

    result = make_watchfiles_iter([Path("/a"), Path("/b")], debounce_ms=7)

    assert result is sentinel
    assert calls == [((Path("/a"), Path("/b")), {"debounce": 7})]

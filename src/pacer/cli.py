from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pacer import __version__
from pacer.config import (
    MODES,
    PacerConfig,
    default_config,
    find_project_root,
    load_config,
    validate_delay_ms,
    validate_mode,
)
from pacer.errors import PacerConfigError, PacerError
from pacer.limiter import RateLimiter, create_debounce, create_throttle

EXIT_OK = 0
EXIT_CONFIG_OR_SCRIPT = 2
EXIT_MISSING_DEPENDENCY = 3


def _add_limiter_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--mode",
        choices=MODES,
        default=None,
        help="Rate limiting policy (defaults to limiter.mode from pacer.toml).",
    )
    p.add_argument(
        "--delay-ms",
        type=int,
        default=None,
        help="Debounce cooldown or throttle interval in milliseconds.",
    )
    p.add_argument("--json", dest="json_output", action="store_true", help="Emit JSON lines.")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pacer")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True)

    replay_p = subparsers.add_parser("replay", help="Run a timestamped event script.")
    replay_p.add_argument("script", help="Script path, or '-' for stdin.")
    _add_limiter_flags(replay_p)
    replay_p.add_argument(
        "--via-events",
        action="store_true",
        help="Feed values through the event-handler path instead of submit().",
    )
    replay_p.add_argument("--show-drops", action="store_true", help="Also print dropped values.")

    watch_p = subparsers.add_parser("watch", help="Rate-limit filesystem change batches.")
    watch_p.add_argument("paths", nargs="*", help="Paths to watch (defaults to watch.paths).")
    _add_limiter_flags(watch_p)
    watch_p.add_argument(
        "--root",
        type=str,
        default=None,
        help="Project root (defaults to searching upward from cwd for pacer.toml).",
    )
    watch_p.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to pacer.toml (defaults to <root>/pacer.toml).",
    )

    return parser


def parse_args(argv: list[str]) -> argparse.Namespace:
    return _build_parser().parse_args(argv)


def _eprint(msg: str) -> None:
    print(msg, file=sys.stderr)


def _print_error(e: BaseException) -> None:
    msg = (str(e) or repr(e)).strip()
    _eprint(f"error: {msg}")


def _configure_logging(args: argparse.Namespace) -> None:
    if getattr(args, "verbose", False):
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _load_config(args: argparse.Namespace) -> PacerConfig:
    root = Path(args.root).resolve() if getattr(args, "root", None) else None
    config_path = Path(args.config).resolve() if getattr(args, "config", None) else None
    if root is not None or config_path is not None:
        return load_config(root=root, config_path=config_path)

    try:
        root = find_project_root(Path.cwd())
    except PacerConfigError:
        # No pacer.toml anywhere above cwd; flags and defaults only.
        return default_config()
    return load_config(root=root)


def _make_limiter(args: argparse.Namespace, cfg: PacerConfig) -> tuple[str, RateLimiter[Any]]:
    mode = validate_mode(args.mode, name="--mode") if args.mode else cfg.limiter.mode
    if args.delay_ms is not None:
        delay_ms = validate_delay_ms(args.delay_ms, name="--delay-ms")
    else:
        delay_ms = cfg.limiter.delay_ms

    if mode == "debounce":
        return mode, create_debounce(delay_ms)
    return mode, create_throttle(delay_ms)


def cmd_replay(args: argparse.Namespace) -> int:
    from pacer.replay import format_timed, parse_script, run_script

    try:
        cfg = _load_config(args)
        mode, limiter = _make_limiter(args, cfg)

        if args.script == "-":
            text = sys.stdin.read()
        else:
            try:
                text = Path(args.script).read_text(encoding="utf-8")
            except OSError as e:
                raise PacerConfigError(f"Failed reading script: {args.script}") from e

        result = run_script(parse_script(text), limiter, via_events=bool(args.via_events))
    except PacerError as e:
        _print_error(e)
        return EXIT_CONFIG_OR_SCRIPT

    rows = [("emit", item) for item in result.emissions]
    if args.show_drops:
        rows.extend(("drop", item) for item in result.drops)
    rows.sort(key=lambda r: r[1].t_ms)

    for kind, item in rows:
        if args.json_output:
            print(json.dumps({"mode": mode, "kind": kind, "t_ms": item.t_ms, "value": item.value}))
        else:
            print(format_timed(kind, item))
    return EXIT_OK


async def _watch(
    *,
    mode: str,
    limiter: RateLimiter[Any],
    cfg: PacerConfig,
    watch_paths: list[Path],
    json_output: bool,
) -> None:
    from pacer.runtime import Pacer
    from pacer.scheduler import AsyncioScheduler
    from pacer.watcher import (
        ChangeBatch,
        format_emission_json,
        make_watchfiles_iter,
        run_watch_loop,
    )

    def on_emit(batch: ChangeBatch) -> None:
        if json_output:
            print(json.dumps(format_emission_json(batch, mode=mode)), flush=True)
            return
        names = ", ".join(str(p) for p in sorted(batch.changed_paths))
        print(f"[{mode}] {names}", flush=True)

    pacer: Pacer[ChangeBatch] = Pacer(limiter, AsyncioScheduler(), on_emit, name="watch")
    await run_watch_loop(
        changes_iter=make_watchfiles_iter(watch_paths, debounce_ms=cfg.watch.debounce_ms),
        submit=pacer.submit,
        roots=watch_paths,
        on_event=(lambda msg: None) if json_output else _eprint,
        suffixes=cfg.watch.suffixes,
        ignore_dirs=cfg.watch.ignore_dirs,
    )


def cmd_watch(args: argparse.Namespace) -> int:
    from pacer.watcher import check_watchfiles_available

    try:
        check_watchfiles_available()
    except ImportError as e:
        _print_error(e)
        return EXIT_MISSING_DEPENDENCY

    try:
        cfg = _load_config(args)
        mode, limiter = _make_limiter(args, cfg)
    except PacerError as e:
        _print_error(e)
        return EXIT_CONFIG_OR_SCRIPT

    watch_paths = [Path(p).resolve() for p in (args.paths or cfg.watch.paths)]
    if not args.json_output:
        _eprint(f"[watch] {mode}: {', '.join(str(p) for p in watch_paths)}")

    try:
        asyncio.run(
            _watch(
                mode=mode,
                limiter=limiter,
                cfg=cfg,
                watch_paths=watch_paths,
                json_output=bool(args.json_output),
            )
        )
    except KeyboardInterrupt:
        pass
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    try:
        args = parse_args(list(sys.argv[1:] if argv is None else argv))
    except SystemExit as e:
        # argparse uses SystemExit for --help/--version and parse errors.
        code = e.code
        return int(code) if isinstance(code, int) else EXIT_CONFIG_OR_SCRIPT

    _configure_logging(args)

    if args.command == "replay":
        return cmd_replay(args)
    if args.command == "watch":
        return cmd_watch(args)

    return EXIT_CONFIG_OR_SCRIPT


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))

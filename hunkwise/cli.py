"""
CLI entry point — argument parsing and main execution flow.
"""

import argparse
import dataclasses
import json
import os
import sys

from .config import Config
from .cli_display import log, setup_logger
from .diff_display import format_result, review_hunks_tui
from .editing.conflicts import STRATEGIES, find_conflicts, resolve_conflicts
from .editing.diff_parser import parse_patch
from .editing.hunk_selector import HunkSelector
from .editing.metrics import read_apply_stats
from .editing.patch_applier import PatchApplier
from .editing.rollback import (
    clear_backups, load_backups, restore_files, save_backups,
)


def _read_patch(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    with open(source, "r", encoding="utf-8") as f:
        return f.read()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hunkwise",
        description="hunkwise — apply LLM-generated unified diffs safely",
    )
    parser.add_argument("--config", default=None,
                        help="Path to .hunkwise.yaml config file")
    parser.add_argument("--no-color", action="store_true",
                        help="Disable ANSI colors")
    sub = parser.add_subparsers(dest="command", required=True)

    p_apply = sub.add_parser("apply", help="Apply a unified diff")
    p_apply.add_argument("patch", help="Patch file, or - for stdin")
    p_apply.add_argument("--repo", default=".",
                         help="Repository root (default: CWD)")
    review = p_apply.add_mutually_exclusive_group()
    review.add_argument("-i", "--interactive", action="store_true",
                        help="Review hunks one by one before applying")
    review.add_argument("--tui", action="store_true",
                        help="Review hunks in the Textual viewer")
    p_apply.add_argument("--dry-run", action="store_true",
                         help="Report what would change without writing")
    p_apply.add_argument("--no-3way", action="store_true",
                         help="Skip git apply --3way and splice hunks directly")
    p_apply.add_argument("--strict", action="store_true",
                         help="Reject files whose hunk counts don't match headers")

    p_parse = sub.add_parser("parse", help="Print the parsed patch as JSON")
    p_parse.add_argument("patch", help="Patch file, or - for stdin")

    p_conf = sub.add_parser("conflicts", help="List merge conflicts")
    p_conf.add_argument("--repo", default=".",
                        help="Repository root (default: CWD)")

    p_resolve = sub.add_parser("resolve", help="Resolve conflict markers in a file")
    p_resolve.add_argument("file")
    p_resolve.add_argument("--strategy", choices=STRATEGIES, default="theirs")

    p_rollback = sub.add_parser("rollback", help="Undo the last apply")
    p_rollback.add_argument("--repo", default=".",
                            help="Repository root (default: CWD)")

    p_stats = sub.add_parser("stats", help="Show apply metrics")
    p_stats.add_argument("--last", type=int, default=50,
                         help="Number of recent applies to include")
    return parser


def _cmd_apply(args, cfg: Config, color: bool) -> int:
    if args.patch == "-" and (args.interactive or args.tui):
        # Review commands come from stdin, which the patch would consume
        print("\n  [ERROR] Hunk review needs the patch in a file, not stdin\n")
        return 2

    try:
        patch_text = _read_patch(args.patch)
    except OSError as e:
        print(f"\n  [ERROR] Cannot read patch: {e}\n")
        return 2

    if args.interactive or args.tui:
        selector = HunkSelector.from_patch(patch_text)
        if args.tui:
            review_hunks_tui(selector)
        else:
            selector.run(color=color)
        patch_text = selector.render_filtered()
        if not patch_text.strip():
            print("  No hunks selected; nothing to apply.")
            return 0

    applier = PatchApplier(
        args.repo, cfg,
        three_way=False if args.no_3way else None,
        strict_hunk_counts=True if args.strict else None,
    )
    result = applier.apply_patch(patch_text, dry_run=args.dry_run)
    log.info("Apply finished: %d applied, %d rejected, %d conflicts",
             len(result.applied), len(result.rejected), len(result.conflicts))

    if result.backups:
        try:
            save_backups(result.backups, args.repo, cfg.METRICS_DIR)
        except OSError as e:
            log.warning("Could not save rollback data: %s", e)

    print(format_result(result, color=color))
    return 1 if result.rejected else 0


def _cmd_rollback(args, cfg: Config) -> int:
    try:
        backups = load_backups(args.repo, cfg.METRICS_DIR)
    except (OSError, ValueError) as e:
        print(f"\n  [ERROR] Cannot read rollback data: {e}\n")
        return 2
    if not backups:
        print("  Nothing to roll back.")
        return 0

    restored = restore_files(backups)
    clear_backups(args.repo, cfg.METRICS_DIR)
    print(f"  Rolled back {len(restored)} of {len(backups)} file(s)")
    return 0 if len(restored) == len(backups) else 1


def _cmd_parse(args) -> int:
    try:
        patch_text = _read_patch(args.patch)
    except OSError as e:
        print(f"\n  [ERROR] Cannot read patch: {e}\n")
        return 2
    file_diffs = [dataclasses.asdict(fd) for fd in parse_patch(patch_text)]
    print(json.dumps(file_diffs, indent=2, default=str))
    return 0


def _cmd_conflicts(args, cfg: Config) -> int:
    conflicts = find_conflicts(args.repo, cfg.GIT_BINARY)
    if not conflicts:
        print("  No merge conflicts.")
        return 0
    for c in conflicts:
        print(f"  {c.file}:{c.line}")
        print(f"    ours:   {c.original!r}")
        print(f"    theirs: {c.incoming!r}")
    return 1


def _cmd_resolve(args) -> int:
    try:
        count = resolve_conflicts(args.file, args.strategy)
    except (OSError, ValueError) as e:
        print(f"\n  [ERROR] {e}\n")
        return 2
    print(f"  Resolved {count} conflict(s) in {args.file} ({args.strategy})")
    return 0


def _cmd_stats(args, cfg: Config) -> int:
    stats = read_apply_stats(last_n=args.last, metrics_dir=cfg.METRICS_DIR)
    print(f"  Total applies:  {stats['total_applies']}")
    print(f"  Success rate:   {stats['success_rate']:.1f}%")
    print(f"  Three-way rate: {stats['delegated_rate']:.1f}%")
    print(f"  Fallback rate:  {stats['fallback_rate']:.1f}%")
    print(f"  Avg rejected:   {stats['avg_rejected']:.2f}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    # ── 0. Load config ──
    try:
        cfg = Config.load(args.config)
    except ValueError as e:
        print(f"\n  [ERROR] Invalid configuration: {e}\n")
        return 2
    setup_logger(cfg.LOG_DIR)
    color = not args.no_color and sys.stdout.isatty() and not os.getenv("NO_COLOR")

    if args.command == "apply":
        return _cmd_apply(args, cfg, color)
    if args.command == "parse":
        return _cmd_parse(args)
    if args.command == "conflicts":
        return _cmd_conflicts(args, cfg)
    if args.command == "resolve":
        return _cmd_resolve(args)
    if args.command == "rollback":
        return _cmd_rollback(args, cfg)
    return _cmd_stats(args, cfg)


if __name__ == "__main__":
    sys.exit(main())

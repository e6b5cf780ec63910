from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from .app.config import APP_VERSION
from .app.flags import unknown_flags
from .core.store import EntityStore
from .io.bundle import BundleParseError, load_bundle, write_bundle
from .services.import_service import ImportSession, preview_import
from .services.overview import datasets_frame, experiments_frame, project_summary

log = logging.getLogger(__name__)

EXIT_PARSE_ERROR = 1
EXIT_BLOCKED = 2


class CommandError(Exception):
    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.status = status


def _load_store(path: str) -> EntityStore:
    """Rehydrate a store by committing every entry of the bundle at ``path``."""

    store = EntityStore()
    session = preview_import(store, _load(path))
    if session.has_blocking_error:
        raise CommandError(f"{path}: {session.blocking_error}", EXIT_BLOCKED)
    if session.items:
        session.commit()
    return store


def _load(path: str):
    try:
        return load_bundle(path)
    except BundleParseError as exc:
        raise CommandError(str(exc), EXIT_PARSE_ERROR) from exc


def _open_session(args: argparse.Namespace) -> tuple[EntityStore, ImportSession]:
    store = _load_store(args.current)
    session = preview_import(store, _load(args.incoming), filename=Path(args.incoming).name)
    return store, session


def _print_session(session: ImportSession) -> None:
    for item in session.items:
        mark = "x" if item.selected else " "
        line = f"[{mark}] {item.key:<14} {item.type:<10} {item.conflict.value:<8} {item.name}"
        if item.type == "dataset" and item.experiment_linking is not None:
            match = item.resolved_match
            target = match.experiment_name if match is not None and match.experiment_name else "-"
            line += f"  link={item.experiment_linking.choice} -> {target}"
        print(line)
        print(f"      {item.conflict_reason}")
    if session.has_blocking_error:
        print(f"BLOCKED: {session.blocking_error}")


def cmd_preview(args: argparse.Namespace) -> int:
    _, session = _open_session(args)
    _print_session(session)
    return EXIT_BLOCKED if session.has_blocking_error else 0


def cmd_merge(args: argparse.Namespace) -> int:
    store, session = _open_session(args)
    for key in args.deselect or []:
        if not session.set_selected(key, False):
            print(f"Unknown item {key!r}", file=sys.stderr)
    for entry in args.link or []:
        key, sep, choice = entry.partition("=")
        if not sep or not session.set_dataset_link_choice(key, choice):
            print(f"Ignored link {entry!r}", file=sys.stderr)

    outcome = session.commit()
    if not outcome.committed:
        print(outcome.summary(), file=sys.stderr)
        return EXIT_BLOCKED
    for warning in outcome.warnings:
        print(f"warning: {warning}", file=sys.stderr)
    target = write_bundle(store, args.output)
    print(outcome.summary())
    print(f"Wrote {target}")
    return 0


def cmd_overview(args: argparse.Namespace) -> int:
    store = _load_store(args.bundle)
    summary = project_summary(store)
    print(
        f"Project {summary['project_id'] or '(no id)'}: {summary['completion']}% complete, "
        f"{summary['experiments']} experiment(s), {summary['datasets']} dataset(s)"
    )
    for title, frame in (("Experiments", experiments_frame(store)), ("Datasets", datasets_frame(store))):
        print(f"\n{title}")
        print(frame.drop(columns=["updated_at"]).to_string(index=False) if not frame.empty else "(none)")
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser("oaemeta")
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    parser.add_argument("--log", action="store_true", help="write rotating log files")
    sub = parser.add_subparsers(dest="cmd", required=True)

    sp = sub.add_parser("preview")
    sp.add_argument("current")
    sp.add_argument("incoming")
    sp.set_defaults(func=cmd_preview)

    sp = sub.add_parser("merge")
    sp.add_argument("current")
    sp.add_argument("incoming")
    sp.add_argument("-o", "--output", required=True)
    sp.add_argument("--deselect", nargs="+", metavar="KEY")
    sp.add_argument(
        "--link",
        nargs="+",
        metavar="KEY=CHOICE",
        help="use-file, existing-N or importing-KEY",
    )
    sp.set_defaults(func=cmd_merge)

    sp = sub.add_parser("overview")
    sp.add_argument("bundle")
    sp.set_defaults(func=cmd_overview)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.log:
        from .core.logging_config import setup_logging

        setup_logging()
    for name in unknown_flags():
        log.warning("Unknown feature flag %r ignored", name)
    try:
        return args.func(args)
    except CommandError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.status


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))

"""Command line interfaces: ``pakutil`` (archive utility) and ``pakhash``."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from .api import BuildOptions, build_pack, checksum, inspect_pack, open_pack
from .logging import configure_logging, get_logger, section, step
from .packing.errors import NotFoundError, PakError
from .packing.inspector import validate_pack
from .reporting import (
    JsonLinesReporter,
    PlainReporter,
    RichReporter,
    SilentReporter,
    get_reporter,
    set_reporter,
    set_verbosity,
)

USAGE = "pakutil [add|remove|check|list|data] dst.pak file ... file n"


def _add_cmd(args: argparse.Namespace) -> int:
    pack = open_pack(args.pak)
    for fp in args.names:
        pack.add_file(fp, fp)
    step(f"writing {len(args.names)} addition(s) to {args.pak}")
    pack.write()
    for fp in args.names:
        print(f"Added {fp} at index: {pack.find(fp)}")
    get_reporter().status(
        f"Write summary: file={args.pak.name} entries={pack.count} "
        f"bytes={pack.file_size}"
    )
    pack.close()
    return 0


def _remove_cmd(args: argparse.Namespace) -> int:
    pack = open_pack(args.pak)
    removed = []
    for name in args.names:
        try:
            index = pack.find(name)
        except NotFoundError:
            print(f"No match found for {name} in pak file")
            continue
        pack.remove_index(index)
        removed.append(name)
    pack.write()
    for name in removed:
        print(f"Removed {name}")
    get_reporter().status(
        f"Remove summary: removed={len(removed)} entries={pack.count}"
    )
    pack.close()
    return 0


def _check_cmd(args: argparse.Namespace) -> int:
    pack = open_pack(args.pak)
    print(f"pak count: {pack.count}")
    for name in args.names:
        if name in pack:
            print(f"Matched {name} at index {pack.find(name)} in pak file")
        else:
            print(f"No match found for {name} in pak file")
    pack.close()
    return 0


def _list_cmd(args: argparse.Namespace) -> int:
    pack = open_pack(args.pak)
    print(f"pak contains: {pack.count} entries.")
    for i, entry in enumerate(pack.entries):
        if args.verbose:
            print(f"{i}: {entry.name} (offset={entry.offset} size={entry.size})")
        else:
            print(f"{i}: {entry.name}")
    pack.close()
    return 0


def _data_cmd(args: argparse.Namespace) -> int:
    pack = open_pack(args.pak)
    out = sys.stdout
    for name in args.names:
        if name not in pack:
            continue
        data = pack.extract(name)
        out.write(f"{name}:\n")
        out.flush()
        out.buffer.write(bytes(data) + b"\n")
        out.buffer.flush()
    pack.close()
    return 0


def _build_cmd(args: argparse.Namespace) -> int:
    with section(f"build {args.pak.name}") as log:
        log.debug("spec: %s", args.spec)
        build_pack(
            BuildOptions(input_spec=args.spec, output_path=args.pak, force=args.force)
        )
    return 0


def _inspect_cmd(args: argparse.Namespace) -> int:
    with section(f"inspect {args.pak.name}"):
        info = inspect_pack(args.pak)
        issues = validate_pack(info)
    print(json.dumps({**info, "issues": issues}, indent=2, sort_keys=True))
    get_reporter().status(
        f"Inspect summary: file={args.pak.name} issues={len(issues)}"
    )
    return 1 if issues else 0


def _help_cmd(args: argparse.Namespace) -> int:
    print(f"Usage: {USAGE}")
    return 0


def _add_pak_parser(sub, name: str, aliases: list[str], help: str, func, names: bool = True):
    p = sub.add_parser(name, aliases=aliases, help=help)
    p.add_argument("pak", type=Path)
    if names:
        p.add_argument("names", nargs="*")
    p.set_defaults(func=func)
    return p


def _add_common_options(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (repeatable)",
    )
    p.add_argument(
        "-r",
        "--reporter",
        choices=["plain", "rich", "json", "silent"],
        default="plain",
        help="Select reporter backend: plain (default), rich, json (JSONL events), silent",
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="pakutil", description="PACK archive utility", usage=USAGE
    )
    _add_common_options(p)
    sub = p.add_subparsers(dest="cmd", required=True)

    _add_pak_parser(sub, "add", ["a"], "Append files and rewrite the pack", _add_cmd)
    _add_pak_parser(sub, "remove", ["r"], "Remove named entries", _remove_cmd)
    _add_pak_parser(sub, "check", ["c"], "Report presence and index of names", _check_cmd)
    _add_pak_parser(sub, "list", ["l"], "List every entry", _list_cmd, names=False)
    _add_pak_parser(sub, "data", ["d"], "Print raw bytes of named entries", _data_cmd)
    _add_pak_parser(
        sub, "inspect", [], "Structural JSON report of a pack", _inspect_cmd, names=False
    )

    b = sub.add_parser("build", help="Create a pack from a JSON/YAML spec")
    b.add_argument("pak", type=Path)
    b.add_argument("spec", type=Path)
    b.add_argument(
        "--force", action="store_true", help="Replace an existing output pack"
    )
    b.set_defaults(func=_build_cmd)

    h = sub.add_parser("help", aliases=["h"], help="Show usage")
    h.set_defaults(func=_help_cmd)
    return p


def _select_reporter(requested: str) -> None:
    if requested == "json":
        set_reporter(JsonLinesReporter(stream=sys.stderr))
    elif requested == "silent":
        set_reporter(SilentReporter())
    elif requested == "rich" and sys.stderr.isatty():
        set_reporter(RichReporter())
    else:
        # rich without a TTY quietly falls back to plain
        set_reporter(PlainReporter())


def _run(args: argparse.Namespace) -> int:
    _select_reporter(args.reporter)
    set_verbosity(args.verbose)
    configure_logging(args.verbose)
    try:
        return args.func(args)
    except PakError as e:
        get_logger().debug("failure context: %s", e.to_dict())
        get_reporter().error(str(e))
        return 1
    except (OSError, ValueError) as e:
        get_reporter().error(str(e))
        return 1
    finally:
        get_reporter().flush()


def main(argv: list[str] | None = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)
    return _run(args)


def checksum_main(argv: list[str] | None = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    p = argparse.ArgumentParser(
        prog="pakhash", description="Print XXH64 content hashes of files"
    )
    _add_common_options(p)
    p.add_argument("paths", nargs="+", type=Path)
    args = p.parse_args(argv)
    args.func = _checksum_cmd
    return _run(args)


def _checksum_cmd(args: argparse.Namespace) -> int:
    status = 0
    for path in args.paths:
        try:
            print(f"{path}: {checksum(path)}")
        except PakError as e:
            get_reporter().error(str(e))
            status = 1
    return status


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

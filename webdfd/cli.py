#!/usr/bin/env python3
"""
webdfd CLI - data-flow diagrams for UI components

Usage:
    webdfd build <file>          Build the DFD of one component (.tsx/.jsx or IR .json)
    webdfd scan <dir>            Summarize every component under a directory
    webdfd init-ignore <dir>     Create a .dfdignore with defaults
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from .component_ir import ComponentIR, IRFormatError
from .dfd_builder import DFDBuilder
from .dfdignore import ensure_dfdignore, find_component_files
from .mermaid_export import to_mermaid
from .react_extractor import ComponentNotFoundError, FileTooLargeError, ParseError, extract_file

logger = logging.getLogger(__name__)

FORMATS = ("json", "mermaid", "compact")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="webdfd",
        description="webdfd: data-flow diagrams for UI components",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    webdfd build src/Counter.tsx --format mermaid
    webdfd build counter.ir.json
    webdfd scan src/components
    webdfd init-ignore .
        """,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging to stderr")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    build_parser = subparsers.add_parser("build", help="Build the DFD of one component")
    build_parser.add_argument("path", help="Component source (.tsx/.jsx) or IR document (.json)")
    build_parser.add_argument("--component", "-c", help="Component name (default: first in file)")
    build_parser.add_argument("--format", "-f", choices=FORMATS, default="json", help="Output format")
    build_parser.add_argument("--output", "-o", help="Write to file instead of stdout")

    scan_parser = subparsers.add_parser("scan", help="Summarize every component under a directory")
    scan_parser.add_argument("path", help="Project directory")
    scan_parser.add_argument("--no-ignore", action="store_true", help="Skip no files (ignore .dfdignore and .gitignore)")
    scan_parser.add_argument("--no-gitignore", action="store_true", help="Apply .dfdignore only")

    init_parser = subparsers.add_parser("init-ignore", help="Create a .dfdignore with defaults")
    init_parser.add_argument("path", nargs="?", default=".", help="Project directory")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if not args.command:
        parser.print_help()
        return 1

    if args.command == "build":
        return cmd_build(args)
    elif args.command == "scan":
        return cmd_scan(args)
    elif args.command == "init-ignore":
        return cmd_init_ignore(args)

    return 0


def load_component(path: Path, component_name: str | None = None) -> ComponentIR:
    """IR from a .json document, otherwise extracted from source."""
    if path.suffix.lower() == ".json":
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise IRFormatError(str(path), f"invalid JSON: {e}")
        return ComponentIR.from_dict(data)
    return extract_file(path, component_name)


def render(info, fmt: str) -> str:
    if fmt == "mermaid":
        return to_mermaid(info)
    if fmt == "compact":
        return json.dumps(info.to_compact_dict(), indent=2)
    return json.dumps(info.to_dict(), indent=2)


def cmd_build(args):
    """Handle build command."""
    path = Path(args.path)
    if not path.is_file():
        print(f"File not found: {path}", file=sys.stderr)
        return 1

    try:
        ir = load_component(path, args.component)
    except (IRFormatError, ComponentNotFoundError, FileTooLargeError, ParseError, ValueError, ImportError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    info = DFDBuilder().build(ir)
    output = render(info, args.format)

    if args.output:
        Path(args.output).write_text(output + "\n", encoding="utf-8")
        print(f"Wrote {args.output}", file=sys.stderr)
    else:
        print(output)
    return 0


def cmd_scan(args):
    """Handle scan command."""
    root = Path(args.path)
    if not root.is_dir():
        print(f"Not a directory: {root}", file=sys.stderr)
        return 1

    files = find_component_files(root, respect_ignore=not args.no_ignore, use_gitignore=not args.no_gitignore)
    if not files:
        print(f"No component files under {root}")
        return 0

    failures = 0
    print(f"# Components under `{root}` ({len(files)} files)")
    print("")
    for file_path in files:
        rel = file_path.relative_to(root)
        try:
            ir = extract_file(file_path)
        except ComponentNotFoundError:
            logger.debug(f"No component in {rel}")
            continue
        except (FileTooLargeError, ParseError, ValueError) as e:
            failures += 1
            print(f"- `{rel}`: error: {e}")
            continue

        info = DFDBuilder().build(ir)
        print(
            f"- `{rel}` {ir.name}: {len(info.nodes)} nodes, {len(info.edges)} edges, "
            f"{len(info.all_subgraphs())} subgraphs"
        )

    return 1 if failures else 0


def cmd_init_ignore(args):
    """Handle init-ignore command."""
    created, message = ensure_dfdignore(args.path)
    print(message)
    return 0 if created else 1


if __name__ == "__main__":
    sys.exit(main())

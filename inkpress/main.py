"""Command-line interface.

Usage:
    inkpress build [--destination DIR] [--baseURL URL] [-D] [-F]
    inkpress serve [--bind ADDR] [--port N] [--no-watch]
    inkpress new posts/my-first-post.md
    inkpress check
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from inkpress import __version__
from inkpress.common.config import load_site_config
from inkpress.common.errors import InkpressError
from inkpress.common.logging import set_level, setup_logging
from inkpress.content.archetype import new_content
from inkpress.server import DEFAULT_BIND, DEFAULT_PORT, PreviewServer
from inkpress.site.builder import SiteBuilder
from inkpress.site.check import check_site

logger = setup_logging(module_name="main")


def cmd_build(args: argparse.Namespace) -> int:
    config = load_site_config(
        args.source,
        overrides={
            "publishDir": str(args.destination.resolve()) if args.destination else None,
            "baseURL": args.base_url,
            "buildDrafts": args.build_drafts or None,
            "buildFuture": args.build_future or None,
            "environment": args.environment,
        },
    )
    report = SiteBuilder(config, strict=not args.skip_invalid).build(clean=not args.no_clean)
    for path, reason in report.skipped:
        logger.warning("Skipped %s: %s", path, reason)
    print(f"\nBuilt {report.pages} pages ({report.total_files} files) into {config.publish_path}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    server = PreviewServer(
        args.source,
        bind=args.bind,
        port=args.port,
        watch=not args.no_watch,
        destination=args.destination,
        build_drafts=not args.no_drafts,
    )
    server.serve_forever()
    return 0


def cmd_new(args: argparse.Namespace) -> int:
    config = load_site_config(args.source)
    target = new_content(config, args.path)
    print(f"\nCreated {target}")
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    config = load_site_config(args.source)
    report = check_site(config)
    if not report.ok:
        logger.error("%d content file(s) have invalid front matter", len(report.errors))
        return 1
    print(f"\nChecked {report.files_checked} files: OK ({len(report.warnings)} warnings)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="inkpress", description="Build a static blog from Markdown")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-s",
        "--source",
        type=Path,
        default=Path("."),
        help="Site root containing hugo.toml (default: current directory)",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    verbosity.add_argument("--quiet", action="store_true", help="Only log warnings and errors")

    commands = parser.add_subparsers(dest="command", required=True)

    build = commands.add_parser("build", help="Build the site into the publish directory")
    build.add_argument("-d", "--destination", type=Path, help="Output directory (default: publishDir)")
    build.add_argument("-b", "--baseURL", dest="base_url", help="Override baseURL")
    build.add_argument("-D", "--buildDrafts", dest="build_drafts", action="store_true", help="Include drafts")
    build.add_argument("-F", "--buildFuture", dest="build_future", action="store_true", help="Include future-dated posts")
    build.add_argument("-e", "--environment", help="Build environment name")
    build.add_argument("--no-clean", action="store_true", help="Keep existing files in the publish directory")
    build.add_argument(
        "--skip-invalid",
        action="store_true",
        help="Skip files with invalid front matter instead of failing the build",
    )
    build.set_defaults(func=cmd_build)

    serve = commands.add_parser("serve", help="Build and serve the site locally, rebuilding on change")
    serve.add_argument("--bind", default=DEFAULT_BIND, help=f"Interface to bind (default: {DEFAULT_BIND})")
    serve.add_argument("-p", "--port", type=int, default=DEFAULT_PORT, help=f"Port (default: {DEFAULT_PORT})")
    serve.add_argument("--no-watch", action="store_true", help="Do not rebuild on change")
    serve.add_argument("--no-drafts", action="store_true", help="Leave drafts out of the preview")
    serve.add_argument("-d", "--destination", type=Path, help="Output directory (default: a temporary dir)")
    serve.set_defaults(func=cmd_serve)

    new = commands.add_parser("new", help="Create a content file from an archetype")
    new.add_argument("path", help="Path under content/, e.g. posts/my-first-post.md")
    new.set_defaults(func=cmd_new)

    check = commands.add_parser("check", help="Validate front matter of every content file")
    check.set_defaults(func=cmd_check)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        set_level(logging.DEBUG)
    elif args.quiet:
        set_level(logging.WARNING)

    try:
        return args.func(args)
    except InkpressError as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())

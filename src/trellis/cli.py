"""Command line interface for the trellis skeleton engine."""

from __future__ import annotations

import argparse
import logging
import subprocess
import sys
import tomllib
from pathlib import Path
from typing import Sequence

from pydantic import ValidationError

from .catalog import SkeletonCache
from .config import EngineConfig
from .errors import SkeletonError
from .model import Project
from .pipeline import RenderState, render_files
from .template import TemplateRenderingError
from .writer import LocalFileWriter


def load_project(path: Path) -> Project:
    """Read the ``[project]`` table of the TOML description at ``path``."""

    with path.open("rb") as handle:
        document = tomllib.load(handle)
    if "project" not in document:
        raise SkeletonError(f"{path}: missing [project] table")
    return Project.model_validate(document["project"])


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Render projects from skeleton directories")
    parser.add_argument(
        "--share-dir",
        type=Path,
        help="Directory holding skeletons/projects and skeletons/packages",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=None,
        help="Increase verbosity (repeat for debug output)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list", help="list the available skeletons")

    show_parser = subparsers.add_parser("show", help="describe a resolved skeleton")
    show_parser.add_argument("kind", choices=["project", "package"], help="Skeleton kind")
    show_parser.add_argument("name", help="Skeleton name")

    render_parser = subparsers.add_parser("render", help="render a project from its description")
    render_parser.add_argument("description", type=Path, help="TOML file with a [project] table")
    render_parser.add_argument(
        "-d",
        "--directory",
        type=Path,
        default=Path.cwd(),
        help="Project root where files are generated",
    )
    render_parser.add_argument(
        "--skip",
        metavar="TAG",
        action="append",
        default=[],
        help="Additional skip tag to activate (repeatable)",
    )
    render_parser.add_argument(
        "--git",
        action="store_true",
        help="Add recorded files to the git index after rendering",
    )

    return parser


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _handle_list(cache: SkeletonCache) -> int:
    sys.stdout.write(cache.known_skeletons())
    return 0


def _handle_show(cache: SkeletonCache, args: argparse.Namespace) -> int:
    if args.kind == "project":
        skeleton = cache.lookup_project(args.name)
    else:
        skeleton = cache.lookup_package(args.name)
    sys.stdout.write(skeleton.describe())
    for item in skeleton.files:
        sys.stdout.write(f"  {item.perm:04o} {item.path}\n")
    return 0


def _handle_render(config: EngineConfig, args: argparse.Namespace) -> int:
    project = load_project(args.description)
    if args.skip:
        project = project.model_copy(update={"skip": [*project.skip, *args.skip]})
    root = args.directory
    root.mkdir(parents=True, exist_ok=True)
    if not config.state_dir.is_absolute():
        config.state_dir = root / config.state_dir

    writer = LocalFileWriter(root, active_skips=project.skip)
    state = RenderState(project=project, skeletons=SkeletonCache(config))
    render_files(writer, state)

    if args.git and writer.recorded:
        subprocess.run(["git", "add", "--", *writer.recorded], cwd=root, check=True)

    print(f"Generated {len(writer.written)} files in {writer.root} ({len(writer.skipped)} skipped)")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = EngineConfig.from_env(share_dir=args.share_dir, verbosity=args.verbose)
    _configure_logging(config.verbosity)
    cache = SkeletonCache(config)

    try:
        if args.command == "list":
            return _handle_list(cache)
        if args.command == "show":
            return _handle_show(cache, args)
        if args.command == "render":
            return _handle_render(config, args)
    except (
        SkeletonError,
        TemplateRenderingError,
        ValidationError,
        tomllib.TOMLDecodeError,
        OSError,
    ) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    parser.error("no command provided")
    return 2


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())

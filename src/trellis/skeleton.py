"""Loading skeleton directories and resolving skeleton inheritance.

A skeleton directory looks like::

    program/
        skeleton.toml      # [skeleton] name/inherits and [file."<path>"] flags
        drom.toml          # manifest fragment (package.toml for package skeletons)
        README.md          # any number of template files, nested freely
        src/main.py

A catalog is a ``dict`` mapping skeleton names to :class:`Skeleton` objects
loaded from the immediate subdirectories of one base directory.
"""

from __future__ import annotations

import logging
import stat
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Mapping, NamedTuple, Optional, Sequence

from .errors import MissingSkeleton, SkeletonError, SkeletonLoadError
from .flags import FileFlags, flags_by_file_from_manifest

__all__ = [
    "MANIFEST_NAMES",
    "SKELETON_MANIFEST",
    "Skeleton",
    "SkeletonFile",
    "inherit_files",
    "load_dir_skeletons",
    "load_skeleton",
    "lookup_skeleton",
    "read_content",
]


LOGGER = logging.getLogger(__name__)

SKELETON_MANIFEST = "skeleton.toml"
MANIFEST_NAMES = {"project": "drom.toml", "package": "package.toml"}
_RESERVED_NAMES = frozenset({SKELETON_MANIFEST, *MANIFEST_NAMES.values()})


class SkeletonFile(NamedTuple):
    """A template file of a skeleton: relative path, raw content and mode."""

    path: str
    content: str
    perm: int


@dataclass(slots=True)
class Skeleton:
    """A named bundle of template files, manifest fragments and file flags."""

    name: str
    inherits: Optional[str] = None
    manifest_fragments: list[str] = field(default_factory=list)
    files: list[SkeletonFile] = field(default_factory=list)
    flags_by_file: dict[str, FileFlags] = field(default_factory=dict)
    is_builtin: bool = False

    def manifest(self) -> dict[str, Any]:
        """Parse the manifest fragments as a single TOML document."""

        text = "\n".join(self.manifest_fragments)
        try:
            return tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise SkeletonError(f"skeleton {self.name!r} has an invalid manifest: {exc}") from exc

    def describe(self) -> str:
        """Return a short human readable summary of the skeleton."""

        inherits = self.inherits or "-"
        return (
            f"skeleton {self.name}\n"
            f"  inherits: {inherits}\n"
            f"  builtin: {self.is_builtin}\n"
            f"  manifest fragments: {len(self.manifest_fragments)}\n"
            f"  files: {len(self.files)}\n"
            f"  flags: {len(self.flags_by_file)}\n"
        )


def read_content(path: Path) -> str:
    """Read ``path`` as text so that every byte survives a later write."""

    return path.read_bytes().decode("utf-8", errors="surrogateescape")


def _read_manifest(toml_path: Path) -> dict[str, Any]:
    try:
        with toml_path.open("rb") as handle:
            return tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        raise SkeletonLoadError(f"Could not parse skeleton file {str(toml_path)!r}: {exc}") from exc


def _skeleton_section(table: Mapping[str, Any]) -> tuple[str, Optional[str]]:
    section = table.get("skeleton")
    if not isinstance(section, Mapping):
        raise SkeletonLoadError("wrong or missing key skeleton.name")
    name = section.get("name")
    if not isinstance(name, str):
        raise SkeletonLoadError("wrong or missing key skeleton.name")
    inherits = section.get("inherits")
    if inherits is not None and not isinstance(inherits, str):
        raise SkeletonLoadError("skeleton.inherits must be a string")
    return name, inherits


def _iter_template_files(directory: Path) -> Iterator[SkeletonFile]:
    for path in directory.rglob("*"):
        if path.name.lower() in _RESERVED_NAMES or path.name.endswith("~"):
            continue
        if not path.is_file():
            if path.is_symlink() and not path.exists():
                LOGGER.warning("ignoring dangling symlink %s", path)
            continue
        relative = path.relative_to(directory).as_posix()
        # Symlinks keep their own mode bits but carry their target's content.
        perm = stat.S_IMODE(path.lstat().st_mode)
        yield SkeletonFile(relative, read_content(path), perm)


def load_skeleton(kind: str, directory: str | Path, *, builtin: bool = True) -> tuple[str, Skeleton]:
    """Load the skeleton stored in ``directory``.

    Parameters
    ----------
    kind:
        ``"project"`` or ``"package"``; selects the sibling manifest file.
    directory:
        Directory holding ``skeleton.toml`` and the template files.
    builtin:
        Whether the skeleton comes from the bundled share directory.

    Raises
    ------
    SkeletonLoadError
        If ``skeleton.toml`` cannot be parsed or lacks ``skeleton.name``.
    """

    if kind not in MANIFEST_NAMES:
        raise ValueError(f"unknown skeleton kind {kind!r}")

    directory = Path(directory)
    table = _read_manifest(directory / SKELETON_MANIFEST)
    name, inherits = _skeleton_section(table)

    fragments: list[str] = []
    manifest_path = directory / MANIFEST_NAMES[kind]
    if manifest_path.exists():
        fragments.append(read_content(manifest_path))
    else:
        LOGGER.warning("file %s does not exist", manifest_path)

    files = sorted(_iter_template_files(directory), key=lambda item: item.path)
    flags = flags_by_file_from_manifest(table, kind=kind, name=name)

    LOGGER.debug("loaded %s skeleton %r from %s (%d files)", kind, name, directory, len(files))
    return name, Skeleton(
        name=name,
        inherits=inherits,
        manifest_fragments=fragments,
        files=files,
        flags_by_file=flags,
        is_builtin=builtin,
    )


def load_dir_skeletons(
    kind: str,
    base_directory: str | Path,
    *,
    verbose: bool = False,
    builtin: bool = True,
) -> dict[str, Skeleton]:
    """Load every skeleton found one level below ``base_directory``.

    A skeleton that fails to load is reported and left out of the catalog.
    When two directories declare the same name, the one loaded last wins.
    """

    base_directory = Path(base_directory)
    catalog: dict[str, Skeleton] = {}
    if not base_directory.is_dir():
        return catalog

    for directory in sorted(base_directory.iterdir()):
        if not (directory / SKELETON_MANIFEST).exists():
            continue
        try:
            name, skeleton = load_skeleton(kind, directory, builtin=builtin)
        except Exception as exc:
            LOGGER.warning("could not load %s skeleton from %r: %s", kind, str(directory), exc)
            continue
        if verbose and name in catalog:
            LOGGER.warning("%s skeleton %r overwritten in %s", kind, name, directory)
        catalog[name] = skeleton
    return catalog


def inherit_files(
    self_files: Sequence[SkeletonFile],
    super_files: Sequence[SkeletonFile],
) -> list[SkeletonFile]:
    """Merge two path-sorted file lists, preferring ``self_files`` on collisions."""

    merged: list[SkeletonFile] = []
    i = j = 0
    while i < len(self_files) and j < len(super_files):
        mine, theirs = self_files[i], super_files[j]
        if mine.path == theirs.path:
            merged.append(mine)
            i += 1
            j += 1
        elif mine.path < theirs.path:
            merged.append(mine)
            i += 1
        else:
            merged.append(theirs)
            j += 1
    merged.extend(self_files[i:])
    merged.extend(super_files[j:])
    return merged


def lookup_skeleton(catalog: Mapping[str, Skeleton], name: str) -> Skeleton:
    """Return ``name`` from ``catalog`` with its whole inheritance chain merged in.

    Raises
    ------
    MissingSkeleton
        If ``name`` or one of its ancestors is not in the catalog.
    SkeletonError
        If the inheritance chain loops.
    """

    def resolve(current: str, chain: tuple[str, ...]) -> Skeleton:
        if current in chain:
            cycle = " -> ".join((*chain, current))
            raise SkeletonError(f"skeleton inheritance cycle: {cycle}")
        try:
            own = catalog[current]
        except KeyError:
            raise MissingSkeleton(current) from None
        if own.inherits is None:
            return own

        parent = resolve(own.inherits, (*chain, current))
        return Skeleton(
            name=current,
            inherits=None,
            manifest_fragments=["\n".join([*parent.manifest_fragments, *own.manifest_fragments])],
            files=inherit_files(own.files, parent.files),
            flags_by_file={**parent.flags_by_file, **own.flags_by_file},
            is_builtin=False,
        )

    return resolve(name, ())

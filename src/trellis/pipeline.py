"""Render the files of a project skeleton and of its package skeletons.

For every file of the resolved skeleton the pipeline

1. mirrors the raw source into the backup directory,
2. computes the file's flags from the skeleton manifest,
3. substitutes the content, letting ``{% ... %}`` directives edit the flags,
4. substitutes the target path,
5. hands everything to the injected write function, which decides whether
   and how the file is actually written.
"""

from __future__ import annotations

import logging
import posixpath
import stat
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Mapping, MutableSequence, Optional, Protocol, Sequence

from .catalog import SkeletonCache
from .conditions import eval_package_cond, eval_project_cond
from .errors import SkeletonError, SkeletonRenderError
from .flags import DirectiveHandler, FileFlags
from .model import Package, Project
from .skeleton import Skeleton, SkeletonFile
from .template import Postpone, TemplateRenderer, TemplateRenderingError

__all__ = [
    "RenderState",
    "Substitute",
    "WriteFunction",
    "backup_skeleton",
    "render_files",
    "render_package",
    "render_project",
    "skeleton_flags",
]


LOGGER = logging.getLogger(__name__)


class WriteFunction(Protocol):
    """Callable that owns the final decision of whether and how to write a file."""

    def __call__(
        self,
        path: str,
        *,
        create_once: bool,
        skip_tags: Sequence[str],
        content: str,
        record: bool,
        skip: bool,
        permission_bits: int,
    ) -> None:
        ...


class Substitute(Protocol):
    """Template substitution function, see :meth:`TemplateRenderer.render_string`."""

    def __call__(
        self,
        template: str,
        context: Mapping[str, Any],
        *,
        missing: str = ...,
        bracket: Optional[Callable[[str], str]] = ...,
        skip_stack: Optional[MutableSequence[bool]] = ...,
        postpone: bool = ...,
    ) -> str:
        ...


def _default_substitute() -> Substitute:
    return TemplateRenderer().render_string


@dataclass(slots=True)
class RenderState:
    """Everything the pipeline needs to render one project or package."""

    project: Project
    skeletons: SkeletonCache
    package: Optional[Package] = None
    postpone: bool = False
    backup_dir: Optional[Path] = None
    substitute: Substitute = field(default_factory=_default_substitute)
    generated: list[str] = field(default_factory=list)

    def generated_files(self) -> list[str]:
        """Return the paths generated so far; unavailable during a first pass."""

        if self.postpone:
            raise Postpone()
        return sorted(self.generated)

    def backup_root(self) -> Path:
        if self.backup_dir is not None:
            return self.backup_dir
        return self.skeletons.config.backup_dir


def backup_skeleton(backup_dir: Path, file: str, content: str, *, perm: int) -> Path:
    """Mirror the raw skeleton ``file`` under ``backup_dir`` with mode ``perm``."""

    target = backup_dir / file
    target.parent.mkdir(parents=True, exist_ok=True)
    if target.exists():
        target.chmod(stat.S_IMODE(target.stat().st_mode) | stat.S_IWUSR)
    target.write_bytes(content.encode("utf-8", errors="surrogateescape"))
    target.chmod(perm)
    return target


def _with_exec_bits(file: str, perm: int) -> int:
    if file.endswith(".sh"):
        return perm | 0o111
    return perm


def skeleton_flags(skeleton: Skeleton, file: str, perm: int) -> FileFlags:
    """Return a fresh copy of the flags declared for ``file`` in ``skeleton``."""

    declared = skeleton.flags_by_file.get(file)
    if declared is None:
        LOGGER.debug("skeleton %r has no flags for file %r", skeleton.name, file)
        flags = FileFlags()
    else:
        flags = declared.copy()

    if not flags.target_path:
        flags.target_path = file
    if flags.permission_bits == 0:
        flags.permission_bits = perm
    flags.permission_bits = _with_exec_bits(file, flags.permission_bits)
    return flags


def _project_context(state: RenderState) -> dict[str, Any]:
    context = dict(state.project.context())
    context["project"] = state.project
    context["generated_files"] = state.generated_files
    return context


def _package_context(state: RenderState, package: Package) -> dict[str, Any]:
    context = dict(package.context())
    context["package"] = package
    context["project"] = state.project
    context["generated_files"] = state.generated_files
    return context


def _render_file(
    write_fn: WriteFunction,
    state: RenderState,
    skeleton: Skeleton,
    item: SkeletonFile,
    *,
    context: Mapping[str, Any],
    evaluate: Callable[[Sequence[str]], bool],
    place: Callable[[str], str],
) -> None:
    file, content, perm = item
    backup_skeleton(state.backup_root(), file, content, perm=perm)

    flags = skeleton_flags(skeleton, file, perm)
    try:
        if flags.apply_substitution:
            content = state.substitute(
                content,
                context,
                missing="error",
                bracket=DirectiveHandler(flags, evaluate),
                skip_stack=flags.conditional_skip_stack,
                postpone=state.postpone,
            )
        target = state.substitute(flags.target_path, context, missing="error", postpone=state.postpone)
    except TemplateRenderingError as exc:
        raise SkeletonRenderError(file, str(exc)) from exc
    except SkeletonError as exc:
        if exc.file is None:
            exc.file = file
        raise

    path = place(target)
    skip = flags.force_skip or flags.suppressed
    permission_bits = _with_exec_bits(file, flags.permission_bits or perm)
    LOGGER.debug("skeleton file %s -> %s (skip=%s, perm=%o)", file, path, skip, permission_bits)
    write_fn(
        path,
        create_once=flags.create_once,
        skip_tags=tuple(flags.skip_tags),
        content=content,
        record=flags.record,
        skip=skip,
        permission_bits=permission_bits,
    )
    if not skip and not any(tag in state.project.skip for tag in flags.skip_tags):
        state.generated.append(path)


def render_project(write_fn: WriteFunction, state: RenderState) -> None:
    """Render the project skeleton of ``state.project`` in two passes.

    The first pass lets lazy values postpone a file; the postponed files are
    rendered again, in skeleton order, once every other file has been handed
    to ``write_fn``. Postponing during the second pass is an error.
    """

    project = state.project
    skeleton = state.skeletons.lookup_project(project.skeleton_name)

    def evaluate(cond: Sequence[str]) -> bool:
        return eval_project_cond(project, cond)

    def render(item: SkeletonFile) -> None:
        _render_file(
            write_fn,
            state,
            skeleton,
            item,
            context=_project_context(state),
            evaluate=evaluate,
            place=lambda target: target,
        )

    state.generated.clear()
    postponed: list[SkeletonFile] = []
    state.postpone = True
    try:
        for item in skeleton.files:
            try:
                render(item)
            except Postpone:
                LOGGER.debug("postponing skeleton file %s", item.path)
                postponed.append(item)
    finally:
        state.postpone = False

    for item in postponed:
        try:
            render(item)
        except Postpone:
            raise SkeletonRenderError(item.path, "postponed twice") from None


def render_package(write_fn: WriteFunction, state: RenderState) -> None:
    """Render the package skeleton of ``state.package`` inside its directory."""

    package = state.package
    if package is None:
        raise ValueError("render_package requires a package in the render state")

    project = state.project
    skeleton = state.skeletons.lookup_package(package.skeleton_name)

    def evaluate(cond: Sequence[str]) -> bool:
        return eval_package_cond(package, cond, project)

    for item in skeleton.files:
        _render_file(
            write_fn,
            state,
            skeleton,
            item,
            context=_package_context(state, package),
            evaluate=evaluate,
            place=lambda target: posixpath.join(package.dir, target),
        )


def render_files(write_fn: WriteFunction, state: RenderState) -> None:
    """Render the project skeleton, then the skeleton of every package."""

    render_project(write_fn, state)
    for package in state.project.packages:
        render_package(write_fn, replace(state, package=package, postpone=False))

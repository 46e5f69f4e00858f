"""Render projects from skeleton directories.

A skeleton is a directory of template files with a ``skeleton.toml`` manifest.
Skeletons can inherit from each other, declare per-file write policies, and
embed ``{% ... %}`` directives in their templates to rename files, change
their permissions or include text conditionally. The package exposes the
loader, the inheritance resolver and the rendering pipeline, both
programmatically and via the command line interface.
"""

from __future__ import annotations

from .catalog import SkeletonCache
from .config import EngineConfig
from .errors import (
    ConditionalStackError,
    MissingSkeleton,
    SkeletonError,
    SkeletonLoadError,
    SkeletonRenderError,
    UnknownCondition,
)
from .flags import DirectiveHandler, FileFlags
from .model import Package, PackageKind, Project
from .pipeline import RenderState, render_files, render_package, render_project
from .skeleton import Skeleton, SkeletonFile, load_dir_skeletons, load_skeleton, lookup_skeleton
from .template import Postpone, TemplateRenderer, TemplateRenderingError
from .writer import LocalFileWriter

__all__ = [
    "ConditionalStackError",
    "DirectiveHandler",
    "EngineConfig",
    "FileFlags",
    "LocalFileWriter",
    "MissingSkeleton",
    "Package",
    "PackageKind",
    "Postpone",
    "Project",
    "RenderState",
    "Skeleton",
    "SkeletonCache",
    "SkeletonError",
    "SkeletonFile",
    "SkeletonLoadError",
    "SkeletonRenderError",
    "TemplateRenderer",
    "TemplateRenderingError",
    "UnknownCondition",
    "load_dir_skeletons",
    "load_skeleton",
    "lookup_skeleton",
    "render_files",
    "render_package",
    "render_project",
]

__version__ = "0.1.0"

"""Lazily built catalogs of project and package skeletons."""

from __future__ import annotations

from .config import EngineConfig
from .skeleton import Skeleton, load_dir_skeletons, lookup_skeleton

__all__ = ["SkeletonCache"]


class SkeletonCache:
    """Load each kind of skeleton catalog once and resolve names against it.

    The cache is meant to be created by the top-level driver and handed to
    the rendering pipeline. It is not thread-safe.
    """

    def __init__(self, config: EngineConfig) -> None:
        self.config = config
        self._catalogs: dict[str, dict[str, Skeleton]] = {}

    def catalog(self, kind: str) -> dict[str, Skeleton]:
        """Return the catalog of ``kind``, loading it on first use."""

        if kind not in self._catalogs:
            self._catalogs[kind] = load_dir_skeletons(
                kind,
                self.config.skeleton_dir(kind),
                verbose=self.config.verbose,
            )
        return self._catalogs[kind]

    def project_skeletons(self) -> list[Skeleton]:
        return [self.catalog("project")[name] for name in sorted(self.catalog("project"))]

    def package_skeletons(self) -> list[Skeleton]:
        return [self.catalog("package")[name] for name in sorted(self.catalog("package"))]

    def lookup_project(self, name: str) -> Skeleton:
        return lookup_skeleton(self.catalog("project"), name)

    def lookup_package(self, name: str) -> Skeleton:
        return lookup_skeleton(self.catalog("package"), name)

    def known_skeletons(self) -> str:
        """Return a two line summary of the available skeleton names."""

        projects = " ".join(skeleton.name for skeleton in self.project_skeletons())
        packages = " ".join(skeleton.name for skeleton in self.package_skeletons())
        return f"project skeletons: {projects}\npackage skeletons: {packages}\n"

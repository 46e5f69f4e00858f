"""Read-only project and package records consumed by the rendering engine."""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_PROJECT_SKELETON = "program"
DEFAULT_EDITION = "3.11"


class PackageKind(str, Enum):
    """Kinds of sub-package a project can declare."""

    LIBRARY = "library"
    PROGRAM = "program"
    VIRTUAL = "virtual"


class Package(BaseModel):
    """A sub-package rendered with its own package skeleton."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(..., description="Name of the package.")
    dir: str = Field(..., description="Directory of the package, relative to the project root.")
    kind: PackageKind = Field(default=PackageKind.LIBRARY, description="What the package builds.")
    skeleton: Optional[str] = Field(None, description="Package skeleton; defaults to the kind name.")
    pack_modules: bool = Field(default=True, description="Whether modules are packed under the package name.")
    synopsis: str = Field(default="", description="One line summary of the package.")
    fields: Dict[str, str] = Field(default_factory=dict, description="Free-form fields exposed to templates.")

    @property
    def skeleton_name(self) -> str:
        return self.skeleton or self.kind.value

    def context(self) -> Dict[str, Any]:
        """Return the flat mapping exposed to package templates."""

        return {
            "name": self.name,
            "dir": self.dir,
            "kind": self.kind.value,
            "skeleton": self.skeleton_name,
            "synopsis": self.synopsis,
            "fields": dict(self.fields),
        }


class Project(BaseModel):
    """Description of the project whose files are generated from a skeleton."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(..., description="Name of the project.")
    version: str = Field(default="0.1.0", description="Current version of the project.")
    synopsis: str = Field(default="", description="One line summary of the project.")
    skeleton: Optional[str] = Field(None, description="Project skeleton; defaults to 'program'.")
    skip: List[str] = Field(default_factory=list, description="Active skip tags.")
    ci_systems: List[str] = Field(default_factory=list, description="CI systems to generate configuration for.")
    authors: List[str] = Field(default_factory=list)
    license: Optional[str] = None
    github_organization: Optional[str] = None
    homepage: Optional[str] = None
    copyright: Optional[str] = None
    bug_reports: Optional[str] = None
    dev_repo: Optional[str] = None
    doc_gen: Optional[str] = None
    doc_api: Optional[str] = None
    sphinx_target: Optional[str] = None
    profile: Optional[str] = None
    edition: str = Field(default=DEFAULT_EDITION, description="Language edition used for development.")
    min_edition: str = Field(default=DEFAULT_EDITION, description="Oldest supported language edition.")
    fields: Dict[str, str] = Field(default_factory=dict, description="Free-form fields exposed to templates.")
    packages: List[Package] = Field(default_factory=list, description="Sub-packages of the project.")

    @property
    def skeleton_name(self) -> str:
        return self.skeleton or DEFAULT_PROJECT_SKELETON

    def _github_pages(self, suffix: str = "") -> Optional[str]:
        if self.github_organization is None:
            return None
        return f"https://{self.github_organization}.github.io/{self.name}{suffix}"

    def homepage_url(self) -> Optional[str]:
        return self.homepage or self._github_pages()

    def bug_reports_url(self) -> Optional[str]:
        if self.bug_reports is not None:
            return self.bug_reports
        if self.github_organization is None:
            return None
        return f"https://github.com/{self.github_organization}/{self.name}/issues"

    def dev_repo_url(self) -> Optional[str]:
        if self.dev_repo is not None:
            return self.dev_repo
        if self.github_organization is None:
            return None
        return f"git+https://github.com/{self.github_organization}/{self.name}.git"

    def doc_gen_url(self) -> Optional[str]:
        return self.doc_gen or self._github_pages("/sphinx")

    def doc_api_url(self) -> Optional[str]:
        return self.doc_api or self._github_pages("/doc")

    def context(self) -> Dict[str, Any]:
        """Return the flat mapping exposed to project templates.

        Optional attributes that are unset are mapped to empty strings so that
        templates guarded by a condition such as ``{% if:homepage %}`` can
        still mention them outside of the guarded block without failing.
        """

        return {
            "name": self.name,
            "version": self.version,
            "synopsis": self.synopsis,
            "skeleton": self.skeleton_name,
            "authors": ", ".join(self.authors),
            "license": self.license or "",
            "github_organization": self.github_organization or "",
            "homepage": self.homepage_url() or "",
            "copyright": self.copyright or "",
            "bug_reports": self.bug_reports_url() or "",
            "dev_repo": self.dev_repo_url() or "",
            "doc_gen": self.doc_gen_url() or "",
            "doc_api": self.doc_api_url() or "",
            "edition": self.edition,
            "min_edition": self.min_edition,
            "fields": dict(self.fields),
        }


__all__ = [
    "DEFAULT_EDITION",
    "DEFAULT_PROJECT_SKELETON",
    "Package",
    "PackageKind",
    "Project",
]

"""Predicates used by ``if`` and ``elif`` directives inside skeleton templates.

A condition is the ``:``-separated remainder of a directive, already split into
tokens. ``{% if:ci:github %}`` is evaluated as ``["ci", "github"]``.
"""

from __future__ import annotations

from typing import Callable, Mapping, Optional, Sequence

from .errors import UnknownCondition
from .model import Package, Project

__all__ = ["eval_package_cond", "eval_project_cond"]


_PROJECT_ATTRIBUTES: Mapping[str, Callable[[Project], object]] = {
    "github-organization": lambda p: p.github_organization,
    "homepage": lambda p: p.homepage_url(),
    "copyright": lambda p: p.copyright,
    "bug-reports": lambda p: p.bug_reports_url(),
    "dev-repo": lambda p: p.dev_repo_url(),
    "doc-gen": lambda p: p.doc_gen_url(),
    "doc-api": lambda p: p.doc_api_url(),
    "sphinx-target": lambda p: p.sphinx_target,
    "profile": lambda p: p.profile,
}


def _eval_field(fields: Mapping[str, str], cond: Sequence[str]) -> bool:
    name, value = cond[1], cond[2:]
    if not value:
        return name in fields
    if name not in fields:
        return False
    return fields[name] == ":".join(value)


def _eval_common(skip: Sequence[str], cond: Sequence[str]) -> Optional[bool]:
    """Evaluate the conditions shared by projects and packages, or return ``None``."""

    if len(cond) == 2 and cond[0] == "skip":
        return cond[1] in skip
    if len(cond) == 2 and cond[0] == "gen":
        return cond[1] not in skip
    if len(cond) == 1 and cond[0] == "true":
        return True
    if len(cond) == 1 and cond[0] == "false":
        return False
    return None


def eval_project_cond(project: Project, cond: Sequence[str]) -> bool:
    """Evaluate ``cond`` against ``project``.

    Raises
    ------
    UnknownCondition
        If ``cond`` is not a recognised condition.
    """

    common = _eval_common(project.skip, cond)
    if common is not None:
        return common

    head = cond[0] if cond else ""
    if len(cond) == 3 and head == "skeleton" and cond[1] == "is":
        return project.skeleton_name == cond[2]
    if head == "not":
        return not eval_project_cond(project, cond[1:])
    if len(cond) == 2 and head == "ci":
        return cond[1] in project.ci_systems
    if len(cond) >= 2 and head == "field":
        return _eval_field(project.fields, cond)
    if len(cond) == 1 and head == "min-edition":
        return project.min_edition != project.edition
    if len(cond) == 1 and head in _PROJECT_ATTRIBUTES:
        return _PROJECT_ATTRIBUTES[head](project) is not None

    raise UnknownCondition(":".join(cond), subject="project")


def eval_package_cond(package: Package, cond: Sequence[str], project: Project) -> bool:
    """Evaluate ``cond`` against ``package``, owned by ``project``.

    Conditions prefixed with ``project:`` are delegated to
    :func:`eval_project_cond`. Skip tags always come from the project.
    """

    common = _eval_common(project.skip, cond)
    if common is not None:
        return common

    head = cond[0] if cond else ""
    if len(cond) == 3 and head == "skeleton" and cond[1] == "is":
        return package.skeleton_name == cond[2]
    if len(cond) == 3 and head == "kind" and cond[1] == "is":
        return package.kind.value == cond[2]
    if len(cond) == 1 and head == "pack":
        return package.pack_modules
    if head == "not":
        return not eval_package_cond(package, cond[1:], project)
    if head == "project":
        return eval_project_cond(project, cond[1:])
    if len(cond) >= 2 and head == "field":
        return _eval_field(package.fields, cond)

    raise UnknownCondition(":".join(cond), subject="package")

"""Custom exception types raised by the skeleton engine."""

from __future__ import annotations


class SkeletonError(RuntimeError):
    """Base class for failures while loading, resolving or rendering skeletons.

    ``file`` names the skeleton file being rendered when the failure happened;
    it is prefixed to the message once set.
    """

    def __init__(self, message: str, *, file: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.file = file

    def __str__(self) -> str:
        if self.file is None:
            return self.message
        return f"{self.file}: {self.message}"


class SkeletonLoadError(SkeletonError):
    """Raised when a skeleton directory cannot be turned into a :class:`Skeleton`."""


class MissingSkeleton(SkeletonError):
    """Raised when a skeleton name is not present in its catalog."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Missing skeleton {name!r}")
        self.name = name


class UnknownCondition(SkeletonError):
    """Raised when a conditional directive uses an unrecognised condition."""

    def __init__(self, condition: str, *, subject: str = "project") -> None:
        super().__init__(f"unknown {subject} condition {condition!r}")
        self.condition = condition


class ConditionalStackError(SkeletonError):
    """Raised for ``else``, ``elif`` or ``fi`` without a matching ``if``."""


class SkeletonRenderError(SkeletonError):
    """Raised when a skeleton file cannot be rendered or written."""

    def __init__(self, file: str, message: str) -> None:
        super().__init__(message, file=file)


__all__ = [
    "ConditionalStackError",
    "MissingSkeleton",
    "SkeletonError",
    "SkeletonLoadError",
    "SkeletonRenderError",
    "UnknownCondition",
]

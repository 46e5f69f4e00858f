"""Per-file write policies and the directive mini-language that edits them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Sequence

from .errors import ConditionalStackError, SkeletonError

__all__ = [
    "DirectiveHandler",
    "FileFlags",
    "flags_by_file_from_manifest",
    "flags_from_table",
    "parse_perm",
]


LOGGER = logging.getLogger(__name__)

Evaluator = Callable[[Sequence[str]], bool]


@dataclass(slots=True)
class FileFlags:
    """Write policy for a single skeleton file.

    Attributes
    ----------
    target_path:
        Output path, possibly containing placeholders. Empty means the source
        path is reused.
    create_once:
        Keep an existing output file instead of overwriting it.
    record:
        Register the written file with revision tracking.
    skip_tags:
        The file is skipped when any of these tags is active.
    force_skip:
        Never write the file.
    conditional_skip_stack:
        One entry per open ``if`` directive, ``True`` while the enclosed text
        is suppressed. The last entry is the innermost frame.
    apply_substitution:
        Render the content through the template engine. When false the source
        content is written unchanged.
    permission_bits:
        File mode of the output. ``0`` inherits the mode of the source file.
    """

    target_path: str = ""
    create_once: bool = False
    record: bool = True
    skip_tags: list[str] = field(default_factory=list)
    force_skip: bool = False
    conditional_skip_stack: list[bool] = field(default_factory=list)
    apply_substitution: bool = True
    permission_bits: int = 0

    def copy(self) -> FileFlags:
        """Return an independent copy with an empty conditional stack."""

        return FileFlags(
            target_path=self.target_path,
            create_once=self.create_once,
            record=self.record,
            skip_tags=list(self.skip_tags),
            force_skip=self.force_skip,
            apply_substitution=self.apply_substitution,
            permission_bits=self.permission_bits,
        )

    @property
    def suppressed(self) -> bool:
        """Whether any open conditional frame currently suppresses output."""

        return any(self.conditional_skip_stack)


def parse_perm(value: str) -> int:
    """Interpret ``value`` as octal permission digits, e.g. ``"755"``."""

    try:
        return int(value, 8)
    except ValueError as exc:
        raise SkeletonError(f"invalid permission {value!r}") from exc


class DirectiveHandler:
    """Apply ``{% ... %}`` directives found in a template to a :class:`FileFlags`.

    The handler is called by the template engine with the text between the
    brackets and always returns an empty string so that directives disappear
    from the rendered output.
    """

    def __init__(self, flags: FileFlags, evaluate: Evaluator) -> None:
        self.flags = flags
        self._evaluate = evaluate

    def __call__(self, directive: str) -> str:
        self.apply(directive)
        return ""

    def apply(self, directive: str) -> None:
        flags = self.flags
        stack = flags.conditional_skip_stack
        tokens = directive.split(":")
        head, args = tokens[0], tokens[1:]

        if head == "file" and len(args) == 1:
            flags.target_path = args[0]
        elif head == "create" and not args:
            flags.create_once = True
        elif head == "skip" and len(args) == 1:
            flags.skip_tags.append(args[0])
        elif head == "skip" and not args:
            flags.force_skip = True
        elif head == "no-record" and not args:
            flags.record = False
        elif head == "perm" and len(args) == 1:
            flags.permission_bits = parse_perm(args[0])
        elif head == "if":
            stack.append(not self._evaluate(args))
        elif head == "else" and not args:
            if not stack:
                raise ConditionalStackError("else without if")
            stack[-1] = not stack[-1]
        elif head == "elif":
            if not stack:
                raise ConditionalStackError("elif without if")
            stack[-1] = not self._evaluate(args)
        elif head in {"fi", "endif"} and not args:
            if not stack:
                raise ConditionalStackError("fi without if")
            stack.pop()
        else:
            LOGGER.warning("unknown flag %r", directive)


def _expect(key: str, value: Any, expected: type) -> Any:
    if not isinstance(value, expected):
        raise SkeletonError(f"{key}: expected {expected.__name__}, got {type(value).__name__}")
    return value


def flags_from_table(path: str, table: Mapping[str, Any]) -> FileFlags:
    """Build the declared :class:`FileFlags` of ``path`` from its manifest table.

    ``table`` is the ``[file."<path>"]`` sub-table of a ``skeleton.toml``.
    Unknown keys are reported and discarded.
    """

    if not isinstance(table, Mapping):
        raise SkeletonError(f"file.{path}: expected a table of flags")

    flags = FileFlags()
    for key, value in table.items():
        qualified = f"file.{path}.{key}"
        if key == "file":
            flags.target_path = _expect(qualified, value, str)
        elif key == "create":
            flags.create_once = _expect(qualified, value, bool)
        elif key == "record":
            flags.record = _expect(qualified, value, bool)
        elif key == "skips":
            tags = _expect(qualified, value, list)
            flags.skip_tags = [_expect(qualified, tag, str) for tag in tags]
        elif key == "skip":
            flags.force_skip = _expect(qualified, value, bool)
        elif key == "subst":
            flags.apply_substitution = _expect(qualified, value, bool)
        elif key == "perm":
            flags.permission_bits = parse_perm(_expect(qualified, value, str))
        else:
            LOGGER.warning("discarding flags field %r", qualified)
    return flags


def flags_by_file_from_manifest(
    manifest: Mapping[str, Any],
    *,
    kind: str = "project",
    name: str = "",
) -> dict[str, FileFlags]:
    """Parse the ``[file]`` table of a skeleton manifest.

    A ``[files]`` table is almost always a misspelling of ``[file]``; it is
    reported but not used.
    """

    if "files" in manifest:
        LOGGER.warning(
            "%s skeleton %r has an entry [files], probably instead of [file]", kind, name
        )

    table = manifest.get("file", {})
    if not isinstance(table, Mapping):
        raise SkeletonError("file: expected a table")
    return {path: flags_from_table(path, entry) for path, entry in table.items()}

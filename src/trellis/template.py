"""Template substitution for skeleton files.

Templates contain two kinds of markup:

``{{ key.path|filter }}``
    A placeholder replaced by a value looked up in the context.
``{% directive %}``
    A bracket handed to a directive handler, typically a
    :class:`~trellis.flags.DirectiveHandler`, whose return value replaces it.

Text and placeholders are only emitted while no frame of the conditional skip
stack suppresses output. Brackets are always processed so that nested
``if``/``fi`` pairs stay balanced.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, MutableMapping, MutableSequence, Optional

__all__ = [
    "Postpone",
    "TemplateRenderer",
    "TemplateRenderingError",
]


# Directives may embed placeholders, as in ``{% file:docs/{{ name }}.md %}``.
_TOKEN_PATTERN = re.compile(
    r"{{\s*(?P<expression>[^{}]+?)\s*}}"
    r"|{%\s*(?P<directive>(?:[^{}%]|{{[^{}]*}})+?)\s*%}"
)
_NON_IDENTIFIER = re.compile(r"[^0-9a-zA-Z_]+")

Bracket = Callable[[str], str]


class TemplateRenderingError(RuntimeError):
    """Raised when the renderer cannot evaluate a placeholder."""


class Postpone(Exception):
    """Signal raised by a lazy context value that is not available yet.

    The rendering pipeline catches it during its first pass and renders the
    file again once every other file has been processed.
    """


def _resolve_value(context: Mapping[str, Any], dotted_path: str) -> Any:
    value: Any = context
    for segment in dotted_path.split("."):
        if isinstance(value, Mapping):
            if segment not in value:
                raise KeyError(segment)
            value = value[segment]
        elif hasattr(value, segment):
            value = getattr(value, segment)
        else:
            raise KeyError(segment)
        if callable(value):
            value = value()
    return value


def _apply_filter(value: Any, filter_name: str, filters: Mapping[str, Callable[[Any], Any]]) -> Any:
    try:
        filter_func = filters[filter_name]
    except KeyError as exc:
        raise TemplateRenderingError(f"unknown filter '{filter_name}'") from exc

    return filter_func(value)


def _module_name(value: Any) -> str:
    return _NON_IDENTIFIER.sub("_", str(value)).strip("_").lower()


@dataclass(slots=True)
class TemplateRenderer:
    """Render templates with ``{{ placeholder|filters }}`` and ``{% directive %}`` markup."""

    filters: MutableMapping[str, Callable[[Any], Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.filters:
            self.filters.update(
                {
                    "upper": lambda value: str(value).upper(),
                    "lower": lambda value: str(value).lower(),
                    "title": lambda value: str(value).title(),
                    "capitalize": lambda value: str(value).capitalize(),
                    "module": _module_name,
                    "repr": lambda value: repr(value),
                    "strip": lambda value: str(value).strip(),
                    "lines": lambda value: "\n".join(str(item) for item in value),
                }
            )

    def render_string(
        self,
        template: str,
        context: Mapping[str, Any],
        *,
        missing: str = "keep",
        bracket: Optional[Bracket] = None,
        skip_stack: Optional[MutableSequence[bool]] = None,
        postpone: bool = False,
    ) -> str:
        """Render ``template`` using ``context``.

        Parameters
        ----------
        template:
            The template string to evaluate.
        context:
            Mapping providing values for placeholders. Callable values are
            called on lookup and may raise :class:`Postpone`.
        missing:
            Controls what happens when a placeholder cannot be resolved. The
            supported policies are ``"keep"`` (return the placeholder unchanged),
            ``"empty"`` (replace with an empty string) and ``"error"`` (raise
            :class:`TemplateRenderingError`).
        bracket:
            Handler receiving the text of each ``{% ... %}`` bracket, with any
            embedded placeholders already substituted under the ``missing``
            and ``postpone`` policies. Without a handler brackets are kept
            verbatim.
        skip_stack:
            Conditional frames shared with ``bracket``; output is suppressed
            while any frame is ``True``.
        postpone:
            Whether a :class:`Postpone` raised by a lazy value may propagate.
            When false it is reported as a :class:`TemplateRenderingError`.
        """

        if missing not in {"keep", "empty", "error"}:
            raise ValueError("missing must be 'keep', 'empty', or 'error'")

        stack = skip_stack if skip_stack is not None else []

        def substitute(match: re.Match[str]) -> str:
            expression = match.group("expression")
            parts = [part.strip() for part in expression.split("|") if part.strip()]
            if not parts:
                return match.group(0)

            key, *filters = parts
            try:
                value = _resolve_value(context, key)
            except KeyError:
                if missing == "keep":
                    return match.group(0)
                if missing == "empty":
                    return ""
                raise TemplateRenderingError(f"missing value for '{key}'")
            except Postpone:
                if postpone:
                    raise
                raise TemplateRenderingError(f"value for '{key}' postponed twice")

            for filter_name in filters:
                value = _apply_filter(value, filter_name, self.filters)

            return str(value)

        output: list[str] = []
        position = 0
        for match in _TOKEN_PATTERN.finditer(template):
            if not any(stack):
                output.append(template[position : match.start()])
            position = match.end()

            directive = match.group("directive")
            if directive is not None:
                if bracket is None:
                    if not any(stack):
                        output.append(match.group(0))
                    continue
                if "{{" in directive:
                    directive = _TOKEN_PATTERN.sub(substitute, directive)
                replacement = bracket(directive)
                if not any(stack):
                    output.append(replacement)
                continue

            if not any(stack):
                output.append(substitute(match))

        if not any(stack):
            output.append(template[position:])
        return "".join(output)

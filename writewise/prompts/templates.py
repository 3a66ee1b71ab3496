"""
Prompt Templates

Named prompt templates with {placeholder} substitution. Rendering checks
that every placeholder has a value before formatting, so a gap fails with
the template's name rather than a bare KeyError.
"""

import re
from string import Formatter
from typing import Any, Mapping, Optional

from writewise.exceptions import PromptTemplateError

_FORMATTER = Formatter()
_FIELD_BASE_RE = re.compile(r"[.\[]")


def template_variables(text: str) -> frozenset[str]:
    """Placeholder names in `text`; `{a.b}` and `{a[0]}` both count as `a`."""
    names = set()
    for _, field_name, _, _ in _FORMATTER.parse(text):
        if field_name:
            base = _FIELD_BASE_RE.split(field_name, maxsplit=1)[0]
            if base:
                names.add(base)
    return frozenset(names)


class PromptTemplate:
    """A named template. `defaults` pre-fill placeholders at render time."""

    def __init__(self, template: str, name: str = "unnamed", defaults: Optional[Mapping[str, Any]] = None):
        self.template = template.strip()
        self.name = name
        self.defaults = dict(defaults or {})
        self.required_vars = template_variables(self.template)

    def missing_vars(self, values: Mapping[str, Any]) -> list[str]:
        return sorted(self.required_vars - set(values))

    def render(self, **values: Any) -> str:
        merged = {**self.defaults, **values}
        missing = self.missing_vars(merged)
        if missing:
            raise PromptTemplateError(template_name=self.name, missing_vars=missing)
        return self.template.format_map(merged)

    def partial(self, **values: Any) -> "PromptTemplate":
        """Bind some placeholders now; the rest are supplied to render()."""
        return PromptTemplate(self.template, name=self.name, defaults={**self.defaults, **values})

    def __repr__(self) -> str:
        return f"PromptTemplate(name='{self.name}', vars={sorted(self.required_vars)})"


def format_numbered_list(items: list[str]) -> str:
    if not items:
        return "None"
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1))

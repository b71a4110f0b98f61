"""
Prompt Template System

Templates with {variable} placeholders that fail loudly on missing values,
and a helper that assembles a prompt from optional blocks.
"""

from string import Formatter
from typing import Any, Optional

from shared.utils.exceptions import PromptTemplateError


class PromptTemplate:
    """Reusable prompt text; `required_vars` is derived from the placeholders."""

    def __init__(
        self,
        template: str,
        name: Optional[str] = None,
        defaults: Optional[dict[str, Any]] = None,
    ):
        self.template = template.strip()
        self.name = name or "unnamed"
        self.defaults = defaults or {}
        self.required_vars = {
            field_name.split(".")[0].split("[")[0]
            for _, field_name, _, _ in Formatter().parse(self.template)
            if field_name
        }

    def render(self, **kwargs: Any) -> str:
        values = {**self.defaults, **kwargs}
        missing = self.required_vars - set(values)
        if missing:
            raise PromptTemplateError(template_name=self.name, missing_vars=sorted(missing))
        return self.template.format(**values)

    def partial(self, **kwargs: Any) -> "PromptTemplate":
        """Bind some variables now; the rest are supplied at render time."""
        return PromptTemplate(
            template=self.template,
            name=f"{self.name}_partial",
            defaults={**self.defaults, **kwargs},
        )

    def __repr__(self) -> str:
        return f"PromptTemplate(name='{self.name}', vars={sorted(self.required_vars)})"


def compose_blocks(*blocks: Optional[str]) -> str:
    """Join the non-empty blocks with a blank line between them."""
    return "\n\n".join(block.strip() for block in blocks if block and block.strip())

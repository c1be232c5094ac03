"""Template registry.

Lookup table of the built-in report templates keyed by ``template_id``.
Loaded once at startup and synced into the ``report_templates`` table.
"""
from __future__ import annotations

from app.core.settings import get_settings
from app.templates.definition import TemplateDefinition
from app.templates.loader import load_all_templates


class TemplateRegistry:
    """In-memory registry of built-in report templates."""

    def __init__(self, templates: list[TemplateDefinition] | None = None) -> None:
        self._templates: dict[str, TemplateDefinition] = {}
        for t in templates or []:
            self._templates[t.template_id] = t

    def register(self, template: TemplateDefinition) -> None:
        """Register (or replace) a template."""
        self._templates[template.template_id] = template

    def get(self, template_id: str) -> TemplateDefinition:
        """Return the template with *template_id* or raise ``KeyError``."""
        try:
            return self._templates[template_id]
        except KeyError:
            raise KeyError(f"Template not found: {template_id!r}")

    def for_report_type(self, report_type: str) -> TemplateDefinition | None:
        """Return the first template declared for *report_type*, if any."""
        for t in self.list_all():
            if t.report_type == report_type:
                return t
        return None

    def list_all(self) -> list[TemplateDefinition]:
        """Return all registered templates sorted by ``template_id``."""
        return sorted(self._templates.values(), key=lambda t: t.template_id)

    @classmethod
    def default(cls) -> TemplateRegistry:
        """Return a registry loaded from ``settings.templates_dir``."""
        return cls(load_all_templates(get_settings().templates_dir))

"""Prompt template registry and ``{{placeholder}}`` substitution."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Mapping, Optional

from ..exceptions import TemplateNotFoundError

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

# Flat names are the unversioned base templates; path-style names are versioned.
TEMPLATE_FILES: Dict[str, str] = {
    "title": "title.md",
    "segment": "segment.md",
    "summary": "summary.md",
    "v1/title.md": "v1/title.md",
    "v1/segment.md": "v1/segment.md",
    "v1/summary.md": "v1/summary.md",
    "v2/title.md": "v2/title.md",
    "v2/segment.md": "v2/segment.md",
    "v2/summary.md": "v2/summary.md",
}


class TemplateLoader:
    def __init__(self, templates_dir: Optional[Path] = None):
        self.templates_dir = templates_dir or TEMPLATES_DIR
        self._cache: Dict[str, str] = {}

    def load_template(self, name: str) -> str:
        """Return the raw text of a registered template.

        Raises:
            TemplateNotFoundError: If ``name`` is not registered or its file is missing
        """
        if name in self._cache:
            return self._cache[name]

        filename = TEMPLATE_FILES.get(name)
        if filename is None:
            raise TemplateNotFoundError(name)

        path = self.templates_dir / filename
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise TemplateNotFoundError(name) from None

        self._cache[name] = text
        return text

    def fill_template(self, name: str, replacements: Mapping[str, str]) -> str:
        """Load a template and substitute every ``{{key}}`` token.

        Tokens without a replacement are left verbatim; templates shared across
        strategies carry placeholders that a given caller may not use.
        """
        template = self.load_template(name)
        for key, value in replacements.items():
            template = template.replace("{{" + key + "}}", str(value))
        return template

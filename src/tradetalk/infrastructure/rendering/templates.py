"""Jinja2 reply templates."""

import logging
from typing import Any

from jinja2 import (
    Environment,
    PackageLoader,
    TemplateError,
    TemplatesNotFound,
    select_autoescape,
)

from tradetalk.domain.entities import Persona, TemplateRenderError

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_DIR = "default"


def create_jinja_env() -> Environment:
    """Create Jinja2 environment for reply templates.

    Templates are loaded from the tradetalk.infrastructure.rendering.templates
    package, one directory per persona plus a default directory.

    Returns:
        Configured Jinja2 environment.
    """
    return Environment(
        loader=PackageLoader("tradetalk.infrastructure.rendering", "templates"),
        autoescape=select_autoescape(),
        trim_blocks=True,
        lstrip_blocks=True,
    )


class JinjaTemplateRenderer:
    """TemplateRenderer backed by persona-specific Jinja2 templates."""

    def __init__(self, env: Environment | None = None) -> None:
        self._env = env or create_jinja_env()

    def render(self, persona: Persona, name: str, data: dict[str, Any]) -> str:
        """Render <persona>/<name>.j2, falling back to default/<name>.j2.

        Raises:
            TemplateRenderError: Neither template exists or rendering failed.
        """
        candidates = [
            f"{persona.value}/{name}.j2",
            f"{DEFAULT_TEMPLATE_DIR}/{name}.j2",
        ]
        try:
            template = self._env.select_template(candidates)
        except TemplatesNotFound as e:
            raise TemplateRenderError(f"No template named '{name}'") from e

        try:
            return template.render(**data).strip()
        except (TemplateError, TypeError, ValueError) as e:
            logger.warning("Failed to render template %s: %s", template.name, e)
            raise TemplateRenderError(f"Failed to render '{template.name}'") from e

"""Reply template rendering."""

from tradetalk.infrastructure.rendering.templates import (
    JinjaTemplateRenderer,
    create_jinja_env,
)

__all__ = ["JinjaTemplateRenderer", "create_jinja_env"]

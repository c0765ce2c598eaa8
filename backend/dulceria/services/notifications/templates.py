"""
Plain-text email templates rendered with Jinja2.

Templates live in ``dulceria/templates/email`` and are named after the
notification kind they render.
"""

from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

from jinja2 import (
    Environment,
    FileSystemLoader,
    TemplateError,
    TemplateNotFound,
)

from dulceria.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent.parent.parent / "templates" / "email"


class TemplateEngineError(Exception):
    """Base exception for template engine errors."""

    def __init__(self, message: str, template_name: Optional[str] = None):
        super().__init__(message)
        self.template_name = template_name


class TemplateNotFoundError(TemplateEngineError):
    """Raised when a template cannot be found."""

    pass


class TemplateRenderError(TemplateEngineError):
    """Raised when template rendering fails."""

    pass


def format_currency(amount: Any) -> str:
    """Format whole currency units, e.g. ``100`` -> ``$100``."""
    return f"${amount}"


def format_minor_currency(amount: Any) -> str:
    """Format minor units, e.g. ``12550`` -> ``$125.50``."""
    value = Decimal(int(amount or 0)) / Decimal(100)
    return f"${value:,.2f}"


class TemplateEngine:
    """Renders notification bodies from text templates."""

    def __init__(self, template_dir: Optional[Path] = None):
        self.template_dir = Path(template_dir or DEFAULT_TEMPLATE_DIR)
        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=False,
        )
        self.env.filters["currency"] = format_currency
        self.env.filters["minor_currency"] = format_minor_currency

    def render(self, template_name: str, context: dict[str, Any]) -> str:
        """
        Render ``<template_name>.txt`` with the given context.

        Raises:
            TemplateNotFoundError: If the template does not exist
            TemplateRenderError: If rendering fails
        """
        try:
            template = self.env.get_template(f"{template_name}.txt")
            return template.render(**context).strip() + "\n"
        except TemplateNotFound as e:
            logger.error("Email template not found", template=template_name)
            raise TemplateNotFoundError(
                f"Template not found: {template_name}", template_name=template_name
            ) from e
        except TemplateError as e:
            logger.error(
                "Email template rendering failed",
                template=template_name,
                error=str(e),
            )
            raise TemplateRenderError(
                f"Failed to render template {template_name}: {e}",
                template_name=template_name,
            ) from e

"""
Notification template engine with Jinja2 for message and email rendering.

Templates live in ``order_tracker/templates/notifications``. A template named
``stage_update`` consists of:

- ``stage_update.txt``: plain message body queued for review (SMS and email)
- ``stage_update_subject.txt``: email subject
- ``stage_update.html``: HTML email wrapper around the reviewed body
"""

from pathlib import Path
from typing import Any, Dict, Optional

from jinja2 import (
    Environment,
    FileSystemLoader,
    Template,
    TemplateError,
    TemplateNotFound,
    select_autoescape,
)
from markupsafe import Markup, escape

from order_tracker.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_TEMPLATE_DIR = Path(__file__).parent.parent.parent / "templates" / "notifications"

STAGE_UPDATE_TEMPLATE = "stage_update"


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


class TemplateEngine:
    """
    Template engine for rendering notification templates.

    Plain text templates are rendered without autoescaping; HTML templates
    escape every variable.
    """

    def __init__(
        self,
        template_dir: Optional[str] = None,
        cache_size: int = 50,
    ):
        """
        Initialize the template engine.

        Args:
            template_dir: Directory containing template files. Defaults to
                         the packaged ``templates/notifications`` directory.
            cache_size: Size of the template cache.
        """
        self.template_dir = Path(template_dir) if template_dir else DEFAULT_TEMPLATE_DIR

        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            autoescape=select_autoescape(["html", "xml"]),
            cache_size=cache_size,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["nl2br"] = self._nl2br

        logger.debug(
            "Template engine initialized",
            template_dir=str(self.template_dir),
        )

    def render_message(self, template_name: str, context: Dict[str, Any]) -> str:
        """
        Render the plain message body for a template.

        Args:
            template_name: Name of the template (without extension).
            context: Variables to substitute in the template.

        Returns:
            Rendered message text without surrounding whitespace.

        Raises:
            TemplateNotFoundError: If the template cannot be found.
            TemplateRenderError: If rendering fails.
        """
        return self._render(f"{template_name}.txt", template_name, context).strip()

    def render_email(
        self,
        template_name: str,
        body: str,
        context: Dict[str, Any],
    ) -> Dict[str, str]:
        """
        Render subject and HTML wrapper for an already reviewed body.

        Args:
            template_name: Name of the template (without extension).
            body: Plain message body; escaped and line-broken in the HTML.
            context: Additional variables (order_number, track_url).

        Returns:
            Dictionary containing 'subject', 'html_body' and 'text_body'.

        Raises:
            TemplateNotFoundError: If a template file cannot be found.
            TemplateRenderError: If rendering fails.
        """
        variables = dict(context, body=body)
        subject = self._render(
            f"{template_name}_subject.txt", template_name, variables
        ).strip()
        html_body = self._render(f"{template_name}.html", template_name, variables)

        return {
            "subject": subject,
            "html_body": html_body,
            "text_body": body,
        }

    def _render(
        self,
        template_path: str,
        template_name: str,
        context: Dict[str, Any],
    ) -> str:
        try:
            template: Template = self.env.get_template(template_path)
            return template.render(**context)
        except TemplateNotFound as e:
            logger.error(
                "Notification template not found",
                template_name=template_name,
                template_path=template_path,
            )
            raise TemplateNotFoundError(
                f"Notification template not found: {template_path}",
                template_name=template_name,
            ) from e
        except TemplateError as e:
            logger.error(
                "Notification template rendering failed",
                template_name=template_name,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise TemplateRenderError(
                f"Failed to render notification template: {str(e)}",
                template_name=template_name,
            ) from e

    @staticmethod
    def _nl2br(value: str) -> Markup:
        """Escape text and turn newlines into <br> tags."""
        return Markup("<br>").join(escape(value or "").split("\n"))


def get_template_engine(template_dir: Optional[str] = None) -> TemplateEngine:
    """
    Factory function to create a template engine instance.

    Args:
        template_dir: Directory containing template files.

    Returns:
        Configured TemplateEngine instance.
    """
    return TemplateEngine(template_dir=template_dir)

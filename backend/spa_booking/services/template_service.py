# backend/spa_booking/services/template_service.py
"""
Template rendering service for the Spa Booking platform.

Renders the Jinja2 email templates under ``spa_booking/templates`` with a
shared set of brand variables and display filters.
"""

from datetime import date, datetime, time
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, Optional, Union

from jinja2 import Environment, FileSystemLoader, TemplateNotFound

from ..core.config import settings
from ..core.constants import BRAND_NAME
from .base import BaseService

TEMPLATE_DIR = Path(__file__).parent.parent / "templates"


def format_price(value: Union[Decimal, float, int, str, None]) -> str:
    """Format a number as currency, e.g. 85 -> "$85.00"."""
    if value is None or value == "":
        return "$0.00"
    return f"${float(value):,.2f}"


def format_date(value: Union[date, str, None], format_str: str = "%A, %B %d, %Y") -> str:
    """Format a date as e.g. "Monday, January 15, 2025"."""
    if value is None:
        return "Unknown date"
    if isinstance(value, str):
        return value  # Already formatted
    return value.strftime(format_str).replace(" 0", " ")


def format_time(value: Union[time, datetime, str, None]) -> str:
    """Format a wall-clock time as e.g. "10:00 AM"."""
    if value is None:
        return "Unknown time"
    if isinstance(value, str):
        return value
    hour12 = value.hour % 12 or 12
    suffix = "PM" if value.hour >= 12 else "AM"
    return f"{hour12}:{value.minute:02d} {suffix}"


class TemplateService(BaseService):
    """
    Centralized template rendering service using Jinja2.

    Uses dependency injection pattern - no singleton.
    """

    def __init__(self, template_dir: Optional[Path] = None):
        super().__init__()
        directory = template_dir or TEMPLATE_DIR
        self.env = Environment(
            loader=FileSystemLoader(str(directory)),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.env.filters["currency"] = format_price
        self.env.filters["format_date"] = format_date
        self.env.filters["format_time"] = format_time
        self.logger.debug(f"Template service initialized with template directory: {directory}")

    def get_common_context(self) -> Dict[str, Any]:
        """Common context variables used across all templates."""
        return {
            "brand_name": BRAND_NAME,
            "current_year": datetime.now().year,
            "support_email": settings.email_from_address,
            "support_phone": settings.support_phone,
        }

    @BaseService.measure_operation("render_template")
    def render_template(
        self, template_name: str, context: Optional[Dict[str, Any]] = None, **kwargs: Any
    ) -> str:
        """
        Render a template with the given context.

        Raises:
            TemplateNotFound: If template doesn't exist
        """
        try:
            template = self.env.get_template(template_name)
        except TemplateNotFound:
            self.logger.error(f"Template not found: {template_name}")
            raise

        full_context = self.get_common_context()
        if context:
            full_context.update(context)
        full_context.update(kwargs)
        return template.render(full_context)

    def template_exists(self, template_name: str) -> bool:
        try:
            self.env.get_template(template_name)
            return True
        except TemplateNotFound:
            return False

import logging
from pathlib import Path
from typing import Any, Optional, Tuple

from jinja2 import Template

from .errors import ConfigurationError

logger = logging.getLogger("Longscribe.Templates")

TEMPLATES_DIR = Path(__file__).parent.parent / "templates"


def load_template(plugin_name: str, template_name: str = "default") -> Tuple[Optional[str], Optional[Path]]:
    """
    Finds and reads the template file.
    Looks for templates in longscribe/templates/{plugin_name}/{template_name}.j2
    or longscribe/templates/{template_name}.j2

    Returns:
        Tuple[str, Path]: The content of the template and its path, or (None, None) if not found.
    """
    template_path = TEMPLATES_DIR / plugin_name / f"{template_name}.j2"
    if template_path.exists():
        with open(template_path, "r", encoding="utf-8") as f:
            return f.read(), template_path

    general_template_path = TEMPLATES_DIR / f"{template_name}.j2"
    if general_template_path.exists():
        with open(general_template_path, "r", encoding="utf-8") as f:
            return f.read(), general_template_path

    return None, None


def render_template(plugin_name: str, template_name: str = "default", **context: Any) -> str:
    content, path = load_template(plugin_name, template_name)
    if content is None:
        raise ConfigurationError(f"Template not found: {plugin_name}/{template_name}.j2")
    logger.debug(f"Rendering {path}")
    return Template(content, keep_trailing_newline=True).render(**context)

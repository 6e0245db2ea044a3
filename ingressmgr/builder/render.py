"""Manifest template rendering.

Templates live in ``ingressmgr/builder/templates`` as ``<name>.yaml.j2`` and
are rendered with ``StrictUndefined``: a template that references a field the
App spec does not provide fails instead of emitting an empty value.
"""

from __future__ import annotations

import functools
from typing import Any

import jinja2

from ingressmgr.errors import TemplatingError
from ingressmgr.models.app import App

_TEMPLATE_SUFFIX = ".yaml.j2"


def _required(value: Any, field_name: str) -> Any:
    if isinstance(value, jinja2.Undefined) or value is None or value == "":
        raise jinja2.UndefinedError(f"required field '{field_name}' is missing or empty")
    return value


def _integer(value: Any, field_name: str, default: int, minimum: int = 0, maximum: int | None = None) -> int:
    """Strict integer coercion; a missing or null field takes *default*.

    Jinja's own ``int`` filter maps anything unparsable to 0.
    """
    if isinstance(value, jinja2.Undefined) or value is None:
        return default
    if isinstance(value, bool):
        number = None
    elif isinstance(value, int):
        number = value
    elif isinstance(value, str) and value.strip().isdigit():
        number = int(value.strip())
    else:
        number = None
    if number is None:
        raise jinja2.TemplateRuntimeError(f"field '{field_name}' must be an integer, got {value!r}")
    if number < minimum or (maximum is not None and number > maximum):
        bounds = f">= {minimum}" if maximum is None else f"between {minimum} and {maximum}"
        raise jinja2.TemplateRuntimeError(f"field '{field_name}' must be {bounds}, got {number}")
    return number


@functools.cache
def _environment() -> jinja2.Environment:
    env = jinja2.Environment(
        loader=jinja2.PackageLoader("ingressmgr.builder", "templates"),
        undefined=jinja2.StrictUndefined,
        autoescape=False,
        keep_trailing_newline=True,
    )
    env.filters["required"] = _required
    env.filters["integer"] = _integer
    return env


def render(template_name: str, app: App) -> bytes:
    """Render *template_name* with *app* as the substitution context.

    Raises:
        TemplatingError: unknown template, syntax error, or a missing field.
    """
    try:
        template = _environment().get_template(template_name + _TEMPLATE_SUFFIX)
        text = template.render(**app.template_context())
    except jinja2.TemplateNotFound as exc:
        raise TemplatingError(template_name, "template not found") from exc
    except jinja2.TemplateError as exc:
        raise TemplatingError(template_name, exc.message or str(exc)) from exc
    except (TypeError, ValueError) as exc:
        raise TemplatingError(template_name, str(exc)) from exc
    return text.encode("utf-8")

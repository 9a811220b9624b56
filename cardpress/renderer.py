"""
renderer.py

Responsibility: personalize the card template.

Rules:
- Field values are written to the nodes the registry points at; a field whose
  node is missing from the template is skipped, not an error.
- The page <title> is derived from the person's name as it reads back from the
  document after writing, never from the raw request.
- Output is a full HTML document prefixed with a doctype.

This module intentionally does NOT know about GitHub or request handling.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from cardpress.document import Document, DocumentError, HtmlDocument
from cardpress.fields import FIELD_REGISTRY, FieldConfig, FieldRegistry, sanitize_value

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_PATH = Path(__file__).resolve().parent / "templates" / "card.html"
DOCTYPE = "<!DOCTYPE html>"


class TemplateLoadError(RuntimeError):
    pass


@dataclass(frozen=True)
class RenderResult:
    html: str
    applied: dict[str, str] = field(default_factory=dict)


def load_template(path: str | Path = DEFAULT_TEMPLATE_PATH) -> str:
    """
    Read the template source. Called once per request; nothing is cached.
    """
    tpl_path = Path(path)
    try:
        return tpl_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.error("Failed to read template from %s: %s", tpl_path, e)
        raise TemplateLoadError(f"Unable to load template file: {tpl_path}") from e


def locate_field(document: Document, config: FieldConfig) -> Any | None:
    if not config.selector:
        return None
    nodes = document.find_nodes(config.selector)
    index = config.occurrence_index if config.occurrence_index is not None else 0
    if index < 0 or index >= len(nodes):
        return None
    return nodes[index]


def read_field(document: Document, config: FieldConfig) -> str:
    node = locate_field(document, config)
    if node is None:
        return ""
    if config.attribute_name:
        return document.get_attribute(node, config.attribute_name) or ""
    return document.get_text(node)


def write_field(document: Document, config: FieldConfig, value: str) -> None:
    node = locate_field(document, config)
    if node is None:
        return
    if config.attribute_name:
        document.set_attribute(node, config.attribute_name, value)
    else:
        document.set_text(node, value)


def capitalize_word(value: str) -> str:
    return value[:1].upper() + value[1:].lower()


def derive_title(document: Document, registry: FieldRegistry = FIELD_REGISTRY) -> str:
    """
    Build "First Last" from the name fields currently in the document.
    Returns "" unless both parts are present.
    """
    first_config = registry.get("personFirst")
    last_config = registry.get("personLast")
    if first_config is None or last_config is None:
        return ""

    first = sanitize_value(read_field(document, first_config))
    last = sanitize_value(read_field(document, last_config))
    if not first or not last:
        return ""
    return f"{capitalize_word(first)} {capitalize_word(last)}".strip()


def apply_fields(
    template_source: str,
    values: Mapping[str, str],
    registry: FieldRegistry = FIELD_REGISTRY,
) -> RenderResult:
    """
    Write `values` into a fresh parse of `template_source` and serialize it.

    `applied` records exactly the ids from `values` that the registry knows.
    """
    try:
        document = HtmlDocument.parse(template_source)
    except DocumentError as e:
        raise TemplateLoadError(str(e)) from e

    applied: dict[str, str] = {}
    for field_id, value in values.items():
        config = registry.get(field_id)
        if config is None:
            continue
        write_field(document, config, value)
        applied[field_id] = value

    computed_title = derive_title(document, registry)
    if computed_title:
        title_nodes = document.find_nodes("title")
        if title_nodes:
            document.set_text(title_nodes[0], computed_title)
        else:
            logger.debug("Template has no <title>; skipping derived title.")

    html = f"{DOCTYPE}\n{document.serialize()}"
    return RenderResult(html=html, applied=applied)

"""
service.py

Responsibility: the single inbound operation, independent of any transport.

Order of checks matters:
- configuration and request validation fail before any external call;
- the template is read (fresh) before GitHub is touched;
- only then does the publisher run.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from cardpress.config import RepoConfig
from cardpress.fields import FIELD_REGISTRY, FieldRegistry, normalize_fields
from cardpress.github_client import GitHubClient
from cardpress.publisher import BranchPublisher, PublishResult
from cardpress.renderer import apply_fields, load_template

logger = logging.getLogger(__name__)

MAX_COMMIT_MESSAGE_LENGTH = 250


class ValidationError(ValueError):
    pass


@dataclass(frozen=True)
class PreviewRequest:
    fields: Any = field(default_factory=dict)
    commit_message: Any = None


def parse_preview_request(raw: bytes | str | Mapping[str, Any]) -> PreviewRequest:
    """
    Decode a request body. Bytes/str must hold a JSON object.
    """
    if isinstance(raw, (bytes, str)):
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise ValidationError("Invalid JSON body.") from e
    else:
        data = raw

    if not isinstance(data, Mapping):
        raise ValidationError("Invalid JSON body.")
    return PreviewRequest(fields=data.get("fields"), commit_message=data.get("commitMessage"))


def default_commit_message(now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    stamp = now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return f"chore: update card preview {stamp}"


def resolve_commit_message(raw: Any, now: datetime | None = None) -> str:
    if isinstance(raw, str) and raw.strip():
        return raw.strip()[:MAX_COMMIT_MESSAGE_LENGTH]
    return default_commit_message(now)


class PreviewService:
    """Personalize the card template and publish it to a new branch."""

    def __init__(
        self,
        config: RepoConfig,
        publisher: BranchPublisher | None = None,
        *,
        registry: FieldRegistry = FIELD_REGISTRY,
    ) -> None:
        self._config = config
        self._registry = registry
        if publisher is None:
            client = GitHubClient(config.token, timeout=config.request_timeout)
            publisher = BranchPublisher(config, client)
        self._publisher = publisher

    @property
    def config(self) -> RepoConfig:
        return self._config

    def publish(self, raw: bytes | str | Mapping[str, Any]) -> PublishResult:
        self._config.require_complete()

        request = parse_preview_request(raw)
        values = normalize_fields(request.fields, self._registry)
        if not values:
            raise ValidationError("No valid fields provided.")

        template = load_template(self._config.template_path)
        rendered = apply_fields(template, values, self._registry)
        commit_message = resolve_commit_message(request.commit_message)

        result = self._publisher.publish(rendered.html, commit_message, rendered.applied)
        logger.info("Published %s (%d fields).", result.branch_name, len(rendered.applied))
        return result

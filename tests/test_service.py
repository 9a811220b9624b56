from __future__ import annotations

import base64
from datetime import datetime, timezone
from pathlib import Path

import pytest

from cardpress.config import ConfigurationError, RepoConfig
from cardpress.document import HtmlDocument
from cardpress.github_client import GitHubClient
from cardpress.publisher import BranchPublisher
from cardpress.renderer import TemplateLoadError
from cardpress.service import (
    PreviewService,
    ValidationError,
    default_commit_message,
    parse_preview_request,
    resolve_commit_message,
)


def _service(config: RepoConfig, session) -> PreviewService:
    client = GitHubClient(config.token, session=session)
    return PreviewService(config, BranchPublisher(config, client, branch_name_factory=lambda: "card-abc"))


def test_parse_preview_request_from_json_bytes() -> None:
    req = parse_preview_request(b'{"fields": {"phone": "1"}, "commitMessage": "hi"}')
    assert req.fields == {"phone": "1"}
    assert req.commit_message == "hi"


@pytest.mark.parametrize("raw", [b"not json", "{", b"\xff\xfe", "[1, 2]", "null", '"text"'])
def test_parse_preview_request_rejects_bad_bodies(raw) -> None:
    with pytest.raises(ValidationError, match="Invalid JSON body."):
        parse_preview_request(raw)


def test_parse_preview_request_missing_keys() -> None:
    req = parse_preview_request("{}")
    assert req.fields is None
    assert req.commit_message is None


def test_resolve_commit_message_trims_and_caps() -> None:
    assert resolve_commit_message("  feat: new card  ") == "feat: new card"
    assert resolve_commit_message("x" * 400) == "x" * 250


@pytest.mark.parametrize("raw", [None, "", "   ", 12, {"m": 1}])
def test_resolve_commit_message_default(raw) -> None:
    now = datetime(2026, 10, 18, 9, 30, 5, 123456, tzinfo=timezone.utc)
    assert resolve_commit_message(raw, now) == "chore: update card preview 2026-10-18T09:30:05.123Z"


def test_default_commit_message_is_timestamped() -> None:
    assert default_commit_message().startswith("chore: update card preview 20")
    assert default_commit_message().endswith("Z")


def test_publish_example_scenario(config: RepoConfig, happy_session) -> None:
    result = _service(config, happy_session).publish(
        b'{"fields": {"personFirst": "patrick", "personLast": "BATEMAN", "nope": "x"}}'
    )

    assert result.applied_fields == {"personFirst": "patrick", "personLast": "BATEMAN"}
    assert result.branch_name == "card-abc"

    put = happy_session.calls[-1]
    html = base64.b64decode(put.json["content"]).decode("utf-8")
    doc = HtmlDocument.parse(html)
    assert doc.get_text(doc.find_nodes("title")[0]) == "Patrick Bateman"
    assert put.json["message"].startswith("chore: update card preview ")


def test_publish_uses_supplied_commit_message(config: RepoConfig, happy_session) -> None:
    _service(config, happy_session).publish({"fields": {"phone": "1"}, "commitMessage": "  my card "})
    assert happy_session.calls[-1].json["message"] == "my card"


@pytest.mark.parametrize("body", [b'{"fields": {}}', b'{"fields": {"unknown": "x"}}', b'{"fields": "x"}', b"{}"])
def test_no_valid_fields_is_validation_error(config: RepoConfig, session, body: bytes) -> None:
    with pytest.raises(ValidationError, match="No valid fields provided."):
        _service(config, session).publish(body)
    assert session.calls == []


def test_unconfigured_token_is_configuration_error(session) -> None:
    config = RepoConfig(owner="acme", repo="cards", token="")
    with pytest.raises(ConfigurationError):
        _service(config, session).publish(b'{"fields": {"phone": "1"}}')
    assert session.calls == []


def test_configuration_checked_before_body(session) -> None:
    config = RepoConfig()
    with pytest.raises(ConfigurationError):
        _service(config, session).publish(b"not json")


def test_template_failure_makes_no_github_calls(config: RepoConfig, session, tmp_path: Path) -> None:
    config = RepoConfig(owner="acme", repo="cards", token="t", template_path=str(tmp_path / "missing.html"))
    with pytest.raises(TemplateLoadError):
        _service(config, session).publish(b'{"fields": {"phone": "1"}}')
    assert session.calls == []


def test_template_is_read_fresh_each_request(happy_session, tmp_path: Path) -> None:
    path = tmp_path / "card.html"
    config = RepoConfig(owner="acme", repo="cards", token="t", template_path=str(path))
    service = _service(config, happy_session)

    path.write_text('<html><head><title>a</title></head><body><p class="card__phone">v1</p></body></html>')
    service.publish({"fields": {"title": "x"}})
    first = base64.b64decode(happy_session.calls[-1].json["content"]).decode("utf-8")

    path.write_text('<html><head><title>a</title></head><body><p class="card__phone">v2</p></body></html>')
    service.publish({"fields": {"title": "x"}})
    second = base64.b64decode(happy_session.calls[-1].json["content"]).decode("utf-8")

    assert "v1" in first
    assert "v2" in second


def test_service_builds_default_publisher(config: RepoConfig) -> None:
    assert PreviewService(config).config is config

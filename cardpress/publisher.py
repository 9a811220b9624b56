"""
publisher.py

Responsibility: publish a rendered card as a new branch of the configured repo.

One publish attempt walks a fixed list of named steps:
1) resolve_base    GET the base branch ref                     (fatal)
2) create_branch   POST a fresh `card-<uuid>` ref at that sha   (fatal)
3) remove_readme   GET + DELETE README on the new branch        (best-effort)
4) commit_content  PUT the rendered HTML on the new branch      (fatal)

Each step returns a tagged `StepResult`. The walk stops at the first FATAL
result; best-effort failures are logged and the walk carries on. Nothing is
retried.
"""

from __future__ import annotations

import enum
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import requests
from jinja2 import Environment, StrictUndefined, TemplateError

from cardpress.config import ConfigurationError, RepoConfig
from cardpress.github_client import GitHubClient, GitHubError, is_success

logger = logging.getLogger(__name__)

GITHUB_WEB_BASE = "https://github.com"


class UpstreamFatalError(RuntimeError):
    def __init__(self, step: str, detail: str) -> None:
        super().__init__(f"{step}: {detail}")
        self.step = step
        self.detail = detail


class StepStatus(enum.Enum):
    OK = "ok"
    SKIPPED = "skipped"
    BEST_EFFORT_FAILED = "best_effort_failed"
    FATAL = "fatal"


@dataclass(frozen=True)
class StepResult:
    status: StepStatus
    detail: str = ""

    @classmethod
    def ok(cls, detail: str = "") -> StepResult:
        return cls(StepStatus.OK, detail)


@dataclass(frozen=True)
class PublishResult:
    branch_name: str
    branch_url: str
    deploy_import_url: str
    applied_fields: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "branchName": self.branch_name,
            "branchUrl": self.branch_url,
            "deployImportUrl": self.deploy_import_url,
            "appliedFields": dict(self.applied_fields),
        }


@dataclass
class PublishState:
    """Mutable scratch space for a single attempt; never shared between attempts."""

    content: str
    commit_message: str
    base_sha: str = ""
    branch_name: str = ""
    results: dict[str, StepResult] = field(default_factory=dict)


@dataclass(frozen=True)
class Step:
    name: str
    run: Callable[[PublishState], StepResult]
    best_effort: bool = False


def _response_json(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _deploy_url_environment() -> Environment:
    env = Environment(autoescape=False, undefined=StrictUndefined)
    env.filters["urlquote"] = lambda value: quote(str(value), safe="")
    return env


def new_branch_name() -> str:
    return f"card-{uuid.uuid4()}"


class BranchPublisher:
    def __init__(
        self,
        config: RepoConfig,
        client: GitHubClient,
        *,
        branch_name_factory: Callable[[], str] = new_branch_name,
    ) -> None:
        self._config = config
        self._client = client
        self._branch_name_factory = branch_name_factory
        try:
            self._deploy_url_template = _deploy_url_environment().from_string(config.deploy_url_template)
        except TemplateError as e:
            raise ConfigurationError(f"Invalid deploy URL template: {e}") from e

    def steps(self) -> list[Step]:
        return [
            Step("resolve_base", self._resolve_base),
            Step("create_branch", self._create_branch),
            Step("remove_readme", self._remove_readme, best_effort=True),
            Step("commit_content", self._commit_content),
        ]

    def publish(self, content: str, commit_message: str, applied_fields: dict[str, str] | None = None) -> PublishResult:
        """
        Run every step against a fresh branch. Raises `UpstreamFatalError` on the
        first fatal step; the caller sees one aggregate outcome.
        """
        self._config.require_complete()

        state = PublishState(content=content, commit_message=commit_message)
        for step in self.steps():
            result = self._run_step(step, state)
            state.results[step.name] = result
            if result.status is StepStatus.FATAL:
                logger.error("Publish aborted at %s: %s", step.name, result.detail)
                raise UpstreamFatalError(step.name, result.detail)
            if result.status is StepStatus.BEST_EFFORT_FAILED:
                logger.warning("Best-effort step %s failed: %s", step.name, result.detail)

        branch_url = self.branch_url(state.branch_name)
        return PublishResult(
            branch_name=state.branch_name,
            branch_url=branch_url,
            deploy_import_url=self.deploy_import_url(branch_url),
            applied_fields=dict(applied_fields or {}),
        )

    def _run_step(self, step: Step, state: PublishState) -> StepResult:
        failed = StepStatus.BEST_EFFORT_FAILED if step.best_effort else StepStatus.FATAL
        try:
            result = step.run(state)
        except GitHubError as e:
            return StepResult(failed, str(e))
        if result.status is StepStatus.FATAL and step.best_effort:
            return StepResult(StepStatus.BEST_EFFORT_FAILED, result.detail)
        return result

    def branch_url(self, branch_name: str) -> str:
        return f"{GITHUB_WEB_BASE}/{self._config.owner}/{self._config.repo}/tree/{branch_name}"

    def deploy_import_url(self, branch_url: str) -> str:
        return self._deploy_url_template.render(
            branch_url=branch_url,
            owner=self._config.owner,
            repo=self._config.repo,
        )

    # Steps

    def _resolve_base(self, state: PublishState) -> StepResult:
        cfg = self._config
        r = self._client.get_ref(cfg.owner, cfg.repo, cfg.base_branch)
        if not is_success(r):
            return StepResult(StepStatus.FATAL, f"Unable to load base branch reference ({r.status_code}).")

        data = _response_json(r)
        obj = data.get("object") if isinstance(data, dict) else None
        sha = obj.get("sha") if isinstance(obj, dict) else None
        if not sha:
            return StepResult(StepStatus.FATAL, "Base branch reference missing SHA.")
        state.base_sha = sha
        return StepResult.ok(sha)

    def _create_branch(self, state: PublishState) -> StepResult:
        cfg = self._config
        branch_name = self._branch_name_factory()
        r = self._client.create_ref(cfg.owner, cfg.repo, f"refs/heads/{branch_name}", state.base_sha)
        if not is_success(r):
            return StepResult(StepStatus.FATAL, f"Unable to create preview branch ({r.status_code}).")
        state.branch_name = branch_name
        return StepResult.ok(branch_name)

    def _remove_readme(self, state: PublishState) -> StepResult:
        cfg = self._config
        r = self._client.get_contents(cfg.owner, cfg.repo, cfg.readme_path, ref=state.branch_name)
        if r.status_code == 404:
            return StepResult(StepStatus.SKIPPED, "README not present.")
        if not is_success(r):
            # Lenient: any lookup failure leaves the README in place and moves on.
            return StepResult(StepStatus.BEST_EFFORT_FAILED, f"Unable to load README metadata ({r.status_code}).")

        data = _response_json(r)
        sha = data.get("sha") if isinstance(data, dict) else None
        if not sha:
            return StepResult(StepStatus.BEST_EFFORT_FAILED, "README metadata missing SHA.")

        r = self._client.delete_contents(
            cfg.owner,
            cfg.repo,
            cfg.readme_path,
            message=f"chore: remove README for {state.branch_name}",
            sha=sha,
            branch=state.branch_name,
            identity=cfg.identity,
        )
        if not is_success(r):
            return StepResult(StepStatus.BEST_EFFORT_FAILED, f"Failed to delete README ({r.status_code}).")
        return StepResult.ok()

    def _commit_content(self, state: PublishState) -> StepResult:
        cfg = self._config
        r = self._client.put_contents(
            cfg.owner,
            cfg.repo,
            cfg.target_file_path,
            message=state.commit_message,
            content=state.content,
            branch=state.branch_name,
            identity=cfg.identity,
        )
        if not is_success(r):
            return StepResult(StepStatus.FATAL, f"Unable to update template file ({r.status_code}).")
        return StepResult.ok()

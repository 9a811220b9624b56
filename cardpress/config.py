"""
config.py

Responsibility: build the repository/publishing configuration once, at startup.

Sources, lowest precedence first:
- built-in defaults
- an optional YAML file (a mapping whose keys are `RepoConfig` field names)
- environment variables (see `ENV_VARS`)

The resulting `RepoConfig` is passed explicitly to the GitHub client and the
publisher. Nothing below this module reads the process environment.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from cardpress.renderer import DEFAULT_TEMPLATE_PATH

DEFAULT_DEPLOY_URL_TEMPLATE = "https://vercel.com/new/clone?repository-url={{ branch_url | urlquote }}"

ENV_VARS: dict[str, str] = {
    "owner": "GITHUB_REPO_OWNER",
    "repo": "GITHUB_REPO_NAME",
    "base_branch": "GITHUB_REPO_BASE_BRANCH",
    "token": "GITHUB_REPO_PAT",
    "commit_author_name": "GITHUB_COMMIT_AUTHOR_NAME",
    "commit_author_email": "GITHUB_COMMIT_AUTHOR_EMAIL",
    "target_file_path": "GITHUB_PREVIEW_FILE_PATH",
    "readme_path": "GITHUB_README_PATH",
    "template_path": "CARDPRESS_TEMPLATE_PATH",
    "deploy_url_template": "CARDPRESS_DEPLOY_URL_TEMPLATE",
    "request_timeout": "CARDPRESS_REQUEST_TIMEOUT",
}

_REQUIRED = ("owner", "repo", "token")


class ConfigurationError(RuntimeError):
    pass


@dataclass(frozen=True)
class CommitIdentity:
    name: str
    email: str

    def as_payload(self) -> dict[str, str]:
        return {"name": self.name, "email": self.email}


@dataclass(frozen=True)
class RepoConfig:
    """Where and as whom rendered cards are published."""

    owner: str = ""
    repo: str = ""
    base_branch: str = "main"
    token: str = ""
    commit_author_name: str = "Card Automation"
    commit_author_email: str = "card-automation@jgoon.com"
    target_file_path: str = "index.html"
    readme_path: str = "README.md"
    template_path: str = str(DEFAULT_TEMPLATE_PATH)
    deploy_url_template: str = DEFAULT_DEPLOY_URL_TEMPLATE
    request_timeout: float = 30.0

    @property
    def identity(self) -> CommitIdentity:
        return CommitIdentity(name=self.commit_author_name, email=self.commit_author_email)

    def missing(self) -> list[str]:
        return [name for name in _REQUIRED if not str(getattr(self, name)).strip()]

    def require_complete(self) -> None:
        missing = self.missing()
        if missing:
            raise ConfigurationError(f"GitHub repository configuration is incomplete (missing: {', '.join(missing)}).")

    def __repr__(self) -> str:
        # Keep the token out of logs and tracebacks.
        token = "***" if self.token else "''"
        return (
            f"RepoConfig(owner={self.owner!r}, repo={self.repo!r}, base_branch={self.base_branch!r}, "
            f"token={token}, target_file_path={self.target_file_path!r})"
        )


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(f"Config file does not exist: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Config file is not valid YAML: {path}") from e
    if not isinstance(data, dict):
        raise ConfigurationError("Config file must be a mapping/object at the top level.")
    return data


def _coerce_timeout(raw: Any) -> float:
    try:
        timeout = float(raw)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"request_timeout must be a number, got {raw!r}") from e
    if timeout <= 0:
        raise ConfigurationError("request_timeout must be positive.")
    return timeout


def load_config(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> RepoConfig:
    """
    Build a `RepoConfig` from defaults, an optional YAML file and the environment.

    Missing required settings are NOT an error here; callers check
    `RepoConfig.missing()` before they talk to GitHub.
    """
    env = os.environ if environ is None else environ
    known = {f.name for f in fields(RepoConfig)}

    values: dict[str, Any] = {}
    if path is not None:
        for key, value in _read_yaml(Path(path)).items():
            if key not in known:
                raise ConfigurationError(f"Unknown config key: {key!r}")
            if value is not None:
                values[key] = value

    for name, var in ENV_VARS.items():
        raw = env.get(var)
        if raw is not None and raw != "":
            values[name] = raw

    for name in known - {"request_timeout"}:
        if name in values:
            values[name] = str(values[name]).strip()
    if "request_timeout" in values:
        values["request_timeout"] = _coerce_timeout(values["request_timeout"])

    return RepoConfig(**values)

"""
github_client.py

Responsibility: Isolate all direct GitHub REST API interaction.

This module must be the only place that:
- Constructs GitHub REST endpoints
- Sends HTTP requests to api.github.com

It deliberately does NOT decide whether a failed status is fatal. Non-2xx
responses are logged and handed back; the publisher interprets them.
"""

from __future__ import annotations

import base64
import logging
from typing import Any
from urllib.parse import quote

import requests

from cardpress.config import CommitIdentity, ConfigurationError

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"


class GitHubError(RuntimeError):
    """The request never produced an HTTP response (connection, timeout, ...)."""


def is_success(response: requests.Response) -> bool:
    return 200 <= response.status_code < 300


def encode_path(path: str) -> str:
    """Percent-encode each segment of a repository file path."""
    return "/".join(quote(segment, safe="") for segment in path.split("/"))


class GitHubClient:
    def __init__(
        self,
        token: str,
        api_base: str = "https://api.github.com",
        *,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self._token = token
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout
        # Without an injected session every call goes through requests.request,
        # so concurrent publishes share no connection pool or cookie jar.
        self._session = session

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self._token}",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
            "User-Agent": "cardpress",
        }

    def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> requests.Response:
        """
        Send an authenticated request and return the response, whatever its status.
        """
        if not self._token.strip():
            raise ConfigurationError("GitHub access token is not configured.")

        merged = {**self._headers(), **(headers or {})}
        url = f"{self._api_base}{path}"
        send = self._session.request if self._session is not None else requests.request
        try:
            r = send(
                method,
                url,
                headers=merged,
                params=params,
                json=json_body,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise GitHubError(f"GitHub request {method} {path} failed: {e}") from e

        if not is_success(r):
            logger.error("GitHub request failed: %s %s %s: %s", r.status_code, method, path, r.text)
        return r

    def get_ref(self, owner: str, repo: str, branch: str) -> requests.Response:
        return self.request("GET", f"/repos/{owner}/{repo}/git/ref/heads/{quote(branch, safe='/')}")

    def create_ref(self, owner: str, repo: str, ref: str, sha: str) -> requests.Response:
        return self.request("POST", f"/repos/{owner}/{repo}/git/refs", json_body={"ref": ref, "sha": sha})

    def get_contents(self, owner: str, repo: str, path: str, *, ref: str) -> requests.Response:
        return self.request("GET", f"/repos/{owner}/{repo}/contents/{encode_path(path)}", params={"ref": ref})

    def delete_contents(
        self,
        owner: str,
        repo: str,
        path: str,
        *,
        message: str,
        sha: str,
        branch: str,
        identity: CommitIdentity,
    ) -> requests.Response:
        body = {
            "message": message,
            "branch": branch,
            "sha": sha,
            "committer": identity.as_payload(),
            "author": identity.as_payload(),
        }
        return self.request("DELETE", f"/repos/{owner}/{repo}/contents/{encode_path(path)}", json_body=body)

    def put_contents(
        self,
        owner: str,
        repo: str,
        path: str,
        *,
        message: str,
        content: str,
        branch: str,
        identity: CommitIdentity,
    ) -> requests.Response:
        """
        Create or update a file on `branch`. `content` is UTF-8 text; it is
        base64-encoded here as the contents API requires.
        """
        body = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": branch,
            "committer": identity.as_payload(),
            "author": identity.as_payload(),
        }
        return self.request("PUT", f"/repos/{owner}/{repo}/contents/{encode_path(path)}", json_body=body)

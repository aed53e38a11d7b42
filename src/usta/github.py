"""Minimal GitHub REST client: replace the body of an issue/PR comment."""

from __future__ import annotations

import httpx

from usta.config import DEFAULT_API_URL
from usta.errors import GitHubError

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_RETRIES = 2


class CommentClient:
    """Updates comments in one repository.

    Every failure surfaces as :class:`GitHubError`; callers decide whether
    it matters.
    """

    def __init__(
        self,
        repository: str,
        token: str,
        *,
        api_url: str = DEFAULT_API_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.repository = repository
        self._token = token
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "usta",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.Client(
            base_url=api_url.rstrip("/"),
            headers=headers,
            timeout=httpx.Timeout(timeout_seconds, connect=10.0),
            transport=transport or httpx.HTTPTransport(retries=max_retries),
        )

    def update_comment(self, comment_id: str, body: str) -> None:
        if not self._token:
            raise GitHubError("GITHUB_TOKEN not available")
        if not self.repository:
            raise GitHubError("GITHUB_REPOSITORY not available")

        url = f"/repos/{self.repository}/issues/comments/{comment_id}"
        try:
            response = self._client.patch(url, json={"body": body})
        except httpx.HTTPError as exc:
            raise GitHubError(f"PATCH {url} failed: {exc}") from exc
        if not response.is_success:
            raise GitHubError(f"PATCH {url} returned HTTP {response.status_code}: {response.text[:200]}")

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> CommentClient:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

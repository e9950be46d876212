"""Async GitHub REST client for pull request metadata.

Retry strategy follows the usual rules for the GitHub API:
- 429 / 502 / 503 / 504: exponential backoff with jitter
- 404: the pull request does not exist, no retry
- other 4xx: no retry
- network errors and timeouts: retry with backoff
"""

from __future__ import annotations

import asyncio
import os
import random
from typing import Any

import httpx

from .config import GitHubConfig
from .types import Contribution

RETRY_STATUSES = {429, 502, 503, 504}


class FetchError(RuntimeError):
    """Pull request metadata could not be obtained."""


class ContributionNotFound(FetchError):
    pass


class NetworkFailure(FetchError):
    pass


class MalformedResponse(FetchError):
    pass


def pull_request_ref(number: str | int) -> str:
    return f"refs/pull/{number}/head"


def parse_pull_request(repo: str, number: str, payload: Any) -> Contribution:
    """Map a `GET /repos/{repo}/pulls/{number}` payload to a Contribution."""
    if not isinstance(payload, dict):
        raise MalformedResponse(f"Expected a JSON object for pull request #{number}")
    try:
        title = payload["title"]
        html_url = payload["html_url"]
        head = payload.get("head") or {}
        source_branch = head.get("ref", "") if isinstance(head, dict) else ""
    except (KeyError, AttributeError) as e:
        raise MalformedResponse(f"Pull request #{number} is missing field {e}") from e
    if not isinstance(title, str) or not isinstance(html_url, str):
        raise MalformedResponse(f"Pull request #{number} has non-string title or html_url")

    return Contribution(
        source_repo=repo,
        identifier=str(number),
        fetch_ref=pull_request_ref(number),
        display_title=title,
        source_url=html_url,
        source_branch=source_branch or "",
    )


class GitHubClient:
    """
    Read-only client for the pull request endpoint.

    Features:
    - Exponential backoff with jitter for rate limits
    - Concurrency limiting via semaphore
    - Optional bearer token
    """

    def __init__(
        self,
        config: GitHubConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config
        self.transport = transport
        self.semaphore = asyncio.Semaphore(config.max_concurrency)
        self.retry_max = max(1, int(os.getenv("PATCHY_RETRY_MAX", "4")))
        self.backoff_base = float(os.getenv("PATCHY_RETRY_BACKOFF_SECONDS", "0.5"))

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "patchy",
        }
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.config.api_url,
            timeout=self.config.timeout_seconds,
            headers=self._headers(),
            transport=self.transport,
        )

    async def _backoff(self, attempt: int) -> None:
        sleep_time = (2**attempt) * self.backoff_base
        jitter = random.uniform(0, 0.1 * sleep_time)
        await asyncio.sleep(sleep_time + jitter)

    async def fetch_pull_request(self, repo: str, number: str | int) -> Contribution:
        """
        Fetch metadata for one pull request.

        Raises:
            ContributionNotFound: the pull request does not exist
            NetworkFailure: transport errors or HTTP errors after retries
            MalformedResponse: the payload is not the expected JSON shape
        """
        number = str(number)
        url = f"/repos/{repo}/pulls/{number}"

        async with self.semaphore:
            async with self._client() as client:
                for attempt in range(self.retry_max):
                    last_attempt = attempt == self.retry_max - 1
                    try:
                        response = await client.get(url)
                    except (httpx.NetworkError, httpx.TimeoutException) as e:
                        if not last_attempt:
                            await self._backoff(attempt)
                            continue
                        raise NetworkFailure(
                            f"Network error fetching pull request #{number} after {self.retry_max} attempts: {e}"
                        ) from e

                    if response.status_code == 404:
                        raise ContributionNotFound(f"Pull request #{number} not found in {repo}")

                    if response.status_code in RETRY_STATUSES and not last_attempt:
                        await self._backoff(attempt)
                        continue

                    if response.status_code != 200:
                        raise NetworkFailure(
                            f"GitHub returned HTTP {response.status_code} for pull request #{number}"
                        )

                    try:
                        payload = response.json()
                    except ValueError as e:
                        raise MalformedResponse(f"Pull request #{number} response is not JSON") from e
                    return parse_pull_request(repo, number, payload)

        raise NetworkFailure(f"Max retries ({self.retry_max}) exceeded for pull request #{number}")

    async def fetch_many(
        self, repo: str, numbers: list[str]
    ) -> list[Contribution | FetchError]:
        """Fetch several pull requests concurrently, keeping input order."""
        results = await asyncio.gather(
            *[self.fetch_pull_request(repo, n) for n in numbers],
            return_exceptions=True,
        )
        out: list[Contribution | FetchError] = []
        for number, result in zip(numbers, results):
            if isinstance(result, (FetchError, Contribution)):
                out.append(result)
            elif isinstance(result, Exception):
                out.append(NetworkFailure(f"Pull request #{number}: {result}"))
            else:
                raise result
        return out

"""ProvenanceVerifier — only tagged packages that really exist may be installed.

Evidence is taken from the package index first (Packagist keywords). When the
keyword is absent, the linked GitHub repository's topic list is consulted.
An unreachable index is NOT the same as a missing keyword: it fails closed
with VerificationFailed and no fallback lookup is attempted.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

import httpx

from conduit.components.discovery import github_headers
from conduit.exceptions import MissingMarker, PackageNotFound, VerificationFailed
from conduit.types import DiscoveredCandidate, ProvenanceReport

logger = logging.getLogger(__name__)

_GITHUB_REPO_RE = re.compile(r"github\.com[/:]([^/]+)/([^/]+?)(?:\.git)?/?$")


def parse_github_repository(url: str) -> Optional[tuple[str, str]]:
    """Extract ``(owner, repo)`` from a GitHub https or ssh URL.

    Examples::

        parse_github_repository("https://github.com/acme/widgets")      → ("acme", "widgets")
        parse_github_repository("git@github.com:acme/widgets.git")      → ("acme", "widgets")
        parse_github_repository("https://gitlab.com/acme/widgets")      → None
    """
    if not url:
        return None
    match = _GITHUB_REPO_RE.search(url.strip())
    if not match:
        return None
    return match.group(1), match.group(2)


class ProvenanceVerifier:
    """Confirms a candidate exists on the package index and carries the marker.

    Args:
        marker: Required topic / keyword.
        packagist_url: Package index base URL.
        github_api_url: GitHub API base URL for the topic fallback.
        timeout: HTTP timeout in seconds.
        token: Optional GitHub token.
    """

    def __init__(
        self,
        marker: str = "conduit-component",
        packagist_url: str = "https://packagist.org",
        github_api_url: str = "https://api.github.com",
        timeout: float = 10.0,
        token: Optional[str] = None,
    ) -> None:
        self._marker = marker
        self._packagist_url = packagist_url.rstrip("/")
        self._github_api_url = github_api_url.rstrip("/")
        self._timeout = timeout
        self._token = token

    @classmethod
    def from_config(cls, config: Any) -> "ProvenanceVerifier":
        return cls(
            marker=config.marker_topic,
            packagist_url=config.packagist_url,
            github_api_url=config.github_api_url,
            timeout=config.http_timeout,
            token=config.github_token,
        )

    @property
    def marker(self) -> str:
        return self._marker

    async def verify(self, candidate: DiscoveredCandidate) -> ProvenanceReport:
        """Verify *candidate.full_name*.

        The name must already have passed ``validate_package_name``; it is
        interpolated into request URLs.

        Raises:
            PackageNotFound: The index answered 404.
            MissingMarker: Neither the index keywords nor the repository topics
                carry the marker.
            VerificationFailed: Any transport or protocol failure.
        """
        package_name = candidate.full_name

        async with httpx.AsyncClient(
            timeout=self._timeout,
            headers={"User-Agent": github_headers()["User-Agent"]},
            follow_redirects=True,
        ) as client:
            package = await self._fetch_index_metadata(client, package_name)

            keywords = package.get("keywords") or []
            if isinstance(keywords, list) and self._marker in keywords:
                logger.debug("'%s' carries '%s' in index keywords", package_name, self._marker)
                return ProvenanceReport(
                    package_name=package_name,
                    marker=self._marker,
                    evidence="index_keywords",
                    repository_url=package.get("repository"),
                )

            repository_url = package.get("repository") or ""
            repo = parse_github_repository(repository_url)
            if repo is None:
                logger.info(
                    "'%s' has no keyword '%s' and no GitHub repository to fall back on",
                    package_name,
                    self._marker,
                )
                raise MissingMarker(package_name, self._marker)

            topics = await self._fetch_repository_topics(client, package_name, *repo)
            if self._marker not in topics:
                raise MissingMarker(package_name, self._marker)

        logger.debug("'%s' carries '%s' in repository topics", package_name, self._marker)
        return ProvenanceReport(
            package_name=package_name,
            marker=self._marker,
            evidence="repository_topics",
            repository_url=repository_url,
        )

    async def _fetch_index_metadata(self, client: httpx.AsyncClient, package_name: str) -> dict:
        """Fetch ``package`` metadata from the Packagist JSON API."""
        url = f"{self._packagist_url}/packages/{package_name}.json"
        try:
            response = await client.get(url)
        except httpx.HTTPError as exc:
            raise VerificationFailed(package_name, f"package index unreachable ({exc})") from exc

        if response.status_code == 404:
            raise PackageNotFound(package_name)
        if response.status_code != 200:
            raise VerificationFailed(
                package_name, f"package index returned HTTP {response.status_code}"
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise VerificationFailed(package_name, "package index returned invalid JSON") from exc

        package = data.get("package") if isinstance(data, dict) else None
        if not isinstance(package, dict):
            raise VerificationFailed(package_name, "package index payload has no 'package' section")
        return package

    async def _fetch_repository_topics(
        self,
        client: httpx.AsyncClient,
        package_name: str,
        owner: str,
        repo: str,
    ) -> list[str]:
        """Fetch the topic list of ``owner/repo`` from the GitHub API."""
        url = f"{self._github_api_url}/repos/{owner}/{repo}/topics"
        try:
            response = await client.get(url, headers=github_headers(self._token))
        except httpx.HTTPError as exc:
            raise VerificationFailed(
                package_name, f"repository topics unreachable ({exc})"
            ) from exc

        if response.status_code == 404:
            # The linked repository is gone or private: no evidence either way
            return []
        if response.status_code != 200:
            raise VerificationFailed(
                package_name, f"repository topics returned HTTP {response.status_code}"
            )

        try:
            names = response.json().get("names", [])
        except (ValueError, AttributeError) as exc:
            raise VerificationFailed(package_name, "repository topics returned invalid JSON") from exc
        return names if isinstance(names, list) else []

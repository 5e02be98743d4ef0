"""RegistryDiscoveryClient — find components tagged with the marker topic on GitHub."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from conduit.types import DiscoveredCandidate

logger = logging.getLogger(__name__)

_MAX_PER_PAGE = 100


def _user_agent() -> str:
    from conduit.version import __version__
    return f"conduit/{__version__} component-discovery"


def github_headers(token: Optional[str] = None) -> dict[str, str]:
    """Headers shared by every GitHub API call Conduit makes."""
    headers = {
        "Accept": "application/vnd.github+json",
        "User-Agent": _user_agent(),
    }
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers


class RegistryDiscoveryClient:
    """Queries the GitHub repository search API for Conduit components.

    Args:
        api_url: GitHub API base URL.
        marker: Topic that marks a repository as a Conduit component.
        per_page: Default page size (clamped to 1–100).
        timeout: HTTP timeout in seconds.
        token: Optional GitHub token.
    """

    def __init__(
        self,
        api_url: str = "https://api.github.com",
        marker: str = "conduit-component",
        per_page: int = 50,
        timeout: float = 10.0,
        token: Optional[str] = None,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        self._marker = marker
        self._per_page = per_page
        self._timeout = timeout
        self._token = token

    @classmethod
    def from_config(cls, config: Any) -> "RegistryDiscoveryClient":
        return cls(
            api_url=config.github_api_url,
            marker=config.marker_topic,
            per_page=config.discovery_per_page,
            timeout=config.http_timeout,
            token=config.github_token,
        )

    async def discover(
        self,
        marker: Optional[str] = None,
        per_page: Optional[int] = None,
    ) -> list[DiscoveredCandidate]:
        """Return active repositories tagged with *marker*, most recently updated first.

        Returns ``[]`` on timeout, HTTP error (rate limits included) or a
        malformed payload and never raises. Safe to retry.
        """
        marker = marker or self._marker
        per_page = max(1, min(_MAX_PER_PAGE, per_page or self._per_page))
        params = {
            "q": f"topic:{marker}",
            "sort": "updated",
            "order": "desc",
            "per_page": str(per_page),
        }

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                headers=github_headers(self._token),
                follow_redirects=True,
            ) as client:
                response = await client.get(
                    f"{self._api_url}/search/repositories", params=params
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.TimeoutException:
            logger.warning("Component discovery timed out after %.1fs", self._timeout)
            return []
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            if status in (403, 429):
                logger.warning("Component discovery rate-limited by GitHub (HTTP %s)", status)
            else:
                logger.warning("Component discovery HTTP error %s", status)
            return []
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Component discovery failed: %s", exc)
            return []

        items = payload.get("items") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            logger.warning("Component discovery returned a malformed payload")
            return []

        if payload.get("incomplete_results"):
            logger.info("GitHub reported incomplete search results for topic '%s'", marker)

        candidates = []
        for item in items:
            candidate = _to_candidate(item)
            if candidate is not None:
                candidates.append(candidate)

        logger.info("Component discovery: found %d components", len(candidates))
        return candidates


def _to_candidate(item: Any) -> Optional[DiscoveredCandidate]:
    """Map one search result to a candidate; archived, disabled or malformed → None."""
    if not isinstance(item, dict):
        return None
    if item.get("archived") or item.get("disabled"):
        return None
    if not item.get("name") or not item.get("full_name"):
        return None

    license_info = item.get("license")
    license_name = license_info.get("name") if isinstance(license_info, dict) else None

    try:
        return DiscoveredCandidate(
            name=item["name"],
            # Composer names are lowercase; GitHub preserves the owner's casing
            full_name=str(item["full_name"]).lower(),
            description=item.get("description") or "No description available",
            url=item.get("html_url") or "",
            topics=item.get("topics") or [],
            updated_at=item.get("updated_at"),
            stars=item.get("stargazers_count") or 0,
            language=item.get("language") or "Unknown",
            license=license_name or "No license",
        )
    except ValidationError as exc:
        logger.debug("Skipping malformed search result %r: %s", item.get("full_name"), exc)
        return None

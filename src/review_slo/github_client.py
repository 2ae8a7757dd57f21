"""GitHub REST/GraphQL client for pull requests awaiting the user's review."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import requests

from .errors import ApiError, InvalidInputError
from .models import ReviewItem
from .storage import parse_timestamp

logger = logging.getLogger(__name__)

REVIEW_DETAILS_QUERY = """
query($owner: String!, $name: String!, $number: Int!) {
  repository(owner: $owner, name: $name) {
    pullRequest(number: $number) {
      additions
      deletions
      isDraft
      reviewRequests(first: 100) {
        nodes {
          asCodeOwner
          requestedReviewer {
            __typename
            ... on User { login }
            ... on Team { combinedSlug }
          }
        }
      }
      timelineItems(last: 100, itemTypes: [REVIEW_REQUESTED_EVENT]) {
        nodes {
          __typename
          ... on ReviewRequestedEvent {
            createdAt
            requestedReviewer {
              __typename
              ... on User { login }
              ... on Team { combinedSlug }
            }
          }
        }
      }
    }
  }
}
"""


@dataclass(slots=True)
class SearchResult:
    """A pull request returned by the review-requested search."""

    repo: str
    number: int
    url: str
    title: str


@dataclass(slots=True)
class ReviewRequestDetails:
    """The subset of pull request details needed to build a review item."""

    additions: int
    deletions: int
    is_draft: bool
    requested_reviewer: str
    as_code_owner: bool
    requested_at: Optional[datetime]


def _reviewer_identity(node: Dict[str, Any]) -> Optional[str]:
    reviewer = node.get("requestedReviewer") or {}
    return reviewer.get("login") or reviewer.get("combinedSlug")


def build_search_query(username: str, repos: Sequence[str] = ()) -> str:
    """Build the search query; ``org/*`` entries become ``org:`` qualifiers."""
    qualifiers = [f"review-requested:{username}", "is:open", "is:pr", "-is:draft"]
    for repo in repos:
        if repo.endswith("/*"):
            qualifiers.append(f"org:{repo[:-2]}")
        else:
            qualifiers.append(f"repo:{repo}")
    return " ".join(qualifiers)


class GitHubClient:
    """Small, typed client for the GitHub search and GraphQL APIs."""

    _API_URL = "https://api.github.com"
    _SEARCH_PAGE_SIZE = 100
    _MAX_RETRIES = 5
    _MAX_BACKOFF_SECONDS = 30

    def __init__(self, token: str, timeout_seconds: int = 30) -> None:
        """Initialize an authenticated GitHub API client.

        Args:
            token: GitHub personal access token.
            timeout_seconds: Per-request timeout in seconds.
        """
        self._timeout_seconds = timeout_seconds
        self._session = requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            }
        )

    def _extract_backoff_seconds(self, response: requests.Response, attempt: int) -> int:
        """Compute exponential backoff seconds, honoring Retry-After when available."""
        retry_after_header = response.headers.get("Retry-After")
        if retry_after_header:
            try:
                retry_after_seconds = int(retry_after_header)
                return min(self._MAX_BACKOFF_SECONDS, max(1, retry_after_seconds))
            except ValueError:
                pass

        return min(self._MAX_BACKOFF_SECONDS, 2 ** (attempt - 1))

    def _request_json(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Execute a request with retry logic for 429/5xx responses.

        Raises:
            ApiError: If the request repeatedly fails, returns HTTP >= 400,
                or does not return a JSON object.
        """
        url = f"{self._API_URL}/{path.lstrip('/')}"
        last_error: Optional[Exception] = None

        for attempt in range(1, self._MAX_RETRIES + 1):
            try:
                response = self._session.request(
                    method,
                    url,
                    params=params,
                    json=json_body,
                    timeout=self._timeout_seconds,
                )
            except requests.RequestException as exc:
                last_error = exc
                if attempt == self._MAX_RETRIES:
                    raise ApiError(f"GitHub request failed after retries: {method} {url}") from exc
                time.sleep(min(self._MAX_BACKOFF_SECONDS, 2 ** (attempt - 1)))
                continue

            status_code = response.status_code
            is_retryable = status_code == 429 or 500 <= status_code <= 599

            if is_retryable and attempt < self._MAX_RETRIES:
                time.sleep(self._extract_backoff_seconds(response, attempt))
                continue

            if status_code >= 400:
                raise ApiError(f"GitHub API request failed: {method} {url} returned {status_code} - {response.text}")

            try:
                payload = response.json()
            except ValueError as exc:
                raise ApiError(f"GitHub API returned invalid JSON: {method} {url}") from exc

            if not isinstance(payload, dict):
                raise ApiError(f"GitHub API returned unexpected payload shape: {method} {url}")

            return payload

        raise ApiError(f"GitHub request failed after retries: {method} {url}") from last_error

    def search_review_requests(self, username: str, repos: Sequence[str] = ()) -> List[SearchResult]:
        """List open, non-draft pull requests requesting review from ``username``."""
        query = build_search_query(username, repos)
        results: List[SearchResult] = []
        page = 1

        while True:
            payload = self._request_json(
                "GET",
                "search/issues",
                params={"q": query, "per_page": self._SEARCH_PAGE_SIZE, "page": page},
            )
            page_items = payload.get("items", [])
            for item in page_items:
                results.append(
                    SearchResult(
                        repo=str(item.get("repository_url", "")).replace(f"{self._API_URL}/repos/", ""),
                        number=int(item["number"]),
                        url=str(item.get("html_url", "")),
                        title=str(item.get("title", "")),
                    )
                )

            if len(page_items) < self._SEARCH_PAGE_SIZE:
                break
            page += 1

        return results

    def get_review_details(self, repo: str, number: int, username: str) -> ReviewRequestDetails:
        """Fetch size, draft state and review-request context of a pull request.

        The user's own review request is preferred over team requests; the
        request time is the latest review-requested event for that reviewer.

        Raises:
            ApiError: If the GraphQL request fails or reports errors.
        """
        owner, _, name = repo.partition("/")
        payload = self._request_json(
            "POST",
            "graphql",
            json_body={
                "query": REVIEW_DETAILS_QUERY,
                "variables": {"owner": owner, "name": name, "number": number},
            },
        )
        if payload.get("errors"):
            raise ApiError(f"GitHub GraphQL errors for {repo}#{number}: {payload['errors']}")

        try:
            pr = payload["data"]["repository"]["pullRequest"]
        except (KeyError, TypeError) as exc:
            raise ApiError(f"GitHub GraphQL returned unexpected payload shape for {repo}#{number}") from exc

        username_lower = username.lower()
        request_nodes = (pr.get("reviewRequests") or {}).get("nodes") or []
        chosen: Optional[Dict[str, Any]] = None
        for node in request_nodes:
            identity = _reviewer_identity(node)
            if identity and identity.lower() == username_lower:
                chosen = node
                break
            if chosen is None and (node.get("requestedReviewer") or {}).get("combinedSlug"):
                chosen = node

        reviewer = _reviewer_identity(chosen) if chosen else None
        reviewer = reviewer or username

        requested_at: Optional[datetime] = None
        for event in (pr.get("timelineItems") or {}).get("nodes") or []:
            identity = _reviewer_identity(event)
            if event.get("__typename") != "ReviewRequestedEvent" or not identity or not event.get("createdAt"):
                continue
            if identity.lower() == reviewer.lower():
                requested_at = parse_timestamp(event["createdAt"])

        return ReviewRequestDetails(
            additions=int(pr.get("additions") or 0),
            deletions=int(pr.get("deletions") or 0),
            is_draft=bool(pr.get("isDraft")),
            requested_reviewer=reviewer,
            as_code_owner=bool(chosen.get("asCodeOwner")) if chosen else False,
            requested_at=requested_at,
        )

    def fetch_review_items(self, username: str, repos: Sequence[str] = ()) -> List[ReviewItem]:
        """Build review items for every pull request currently awaiting ``username``.

        Pull requests without a known request time, drafts, and pull requests
        whose details cannot be fetched are skipped with a warning.
        """
        if not username:
            raise InvalidInputError("GitHub username not configured. Run: pr-review-slo init <username>")

        items: List[ReviewItem] = []
        skipped = 0

        for result in self.search_review_requests(username, repos):
            try:
                details = self.get_review_details(result.repo, result.number, username)
            except ApiError as exc:
                logger.warning("Failed to fetch details for %s#%s: %s", result.repo, result.number, exc)
                skipped += 1
                continue

            if details.requested_at is None:
                logger.warning("Could not find review request time for %s#%s", result.repo, result.number)
                skipped += 1
                continue

            if details.is_draft:
                logger.debug("Skipping draft pull request", extra={"repo": result.repo, "number": result.number})
                skipped += 1
                continue

            items.append(
                ReviewItem(
                    id=result.url,
                    title=result.title,
                    requested_at=details.requested_at,
                    size=details.additions + details.deletions,
                    as_code_owner=details.as_code_owner,
                    requested_reviewer=details.requested_reviewer,
                )
            )

        logger.info(
            "Collected review requests",
            extra={"username": username, "items": len(items), "skipped": skipped},
        )
        return items

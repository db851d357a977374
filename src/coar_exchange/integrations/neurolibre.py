"""NeuroLibre collaborator: paper data from the NeuroLibre API, comments on GitHub."""

import logging

import httpx

from coar_exchange.config import Settings
from coar_exchange.integrations.base import ReviewCollaborator
from coar_exchange.integrations.github import GitHubCommentClient
from coar_exchange.models.paper import PaperRecord

logger = logging.getLogger(__name__)


class NeurolibreCollaborator(ReviewCollaborator):
    """Talks to the NeuroLibre papers API, authenticated with a shared secret.

    Endpoints used:
        ``GET  {api}/api_lookup_by_doi?doi=&secret=``   -> ``{"review_issue_id": n}``
        ``GET  {api}/api_paper_by_issue?issue_id=&secret=``
        ``POST {api}/api_update_coar_review``           ``{secret, doi, review}``
    """

    def __init__(
        self,
        api_url: str,
        secret: str,
        comments: GitHubCommentClient,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.secret = secret
        self.comments = comments
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "NeurolibreCollaborator":
        comments = GitHubCommentClient(
            repository=settings.reviews_repository,
            token=settings.github_token,
            api_url=settings.github_api_url,
            timeout=settings.http_timeout,
        )
        return cls(
            api_url=settings.neurolibre_api_url,
            secret=settings.neurolibre_secret,
            comments=comments,
            timeout=settings.http_timeout,
        )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def post_comment(self, issue_id: int, message: str) -> bool:
        if not issue_id:
            return False
        return await self.comments.post_comment(issue_id, message)

    async def lookup_issue_by_doi(self, doi: str) -> int | None:
        if not doi:
            return None
        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.api_url}/api_lookup_by_doi",
                    params={"doi": doi, "secret": self.secret},
                )
            if response.status_code != 200:
                logger.info("No review issue for DOI %s (status %s)", doi, response.status_code)
                return None
            issue_id = response.json().get("review_issue_id")
            return int(issue_id) if issue_id else None
        except (httpx.HTTPError, ValueError, TypeError) as exc:
            logger.warning("Failed to query NeuroLibre API for DOI %s: %s", doi, exc)
            return None

    async def update_external_metadata(self, doi: str, metadata: dict) -> bool:
        if not doi:
            return False
        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.api_url}/api_update_coar_review",
                    json={"secret": self.secret, "doi": doi, "review": metadata},
                )
        except httpx.HTTPError as exc:
            logger.warning("Failed to update NeuroLibre metadata for DOI %s: %s", doi, exc)
            return False
        return response.is_success

    async def fetch_paper_by_issue(self, issue_id: int) -> PaperRecord | None:
        if not issue_id:
            return None
        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.api_url}/api_paper_by_issue",
                    params={"issue_id": issue_id, "secret": self.secret},
                )
            if response.status_code != 200:
                logger.warning("Paper lookup for issue #%s returned %s", issue_id, response.status_code)
                return None
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Failed to get paper for issue #%s: %s", issue_id, exc)
            return None
        if not isinstance(data, dict):
            logger.warning("Paper lookup for issue #%s returned a non-object body", issue_id)
            return None
        data.setdefault("issue_id", issue_id)
        return PaperRecord.model_validate(data)

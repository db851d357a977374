"""GitHub issue comments via the GitHub REST API."""

import logging

import httpx

logger = logging.getLogger(__name__)


class GitHubCommentClient:
    """Posts comments to issues of one reviews repository.

    Authentication uses a ``Bearer`` token; without one the client logs and
    skips every post.
    """

    def __init__(
        self,
        repository: str,
        token: str,
        api_url: str = "https://api.github.com",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.repository = repository
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def post_comment(self, issue_id: int, body: str) -> bool:
        if not self.token:
            logger.warning("No GitHub token configured; comment to issue #%s not posted", issue_id)
            return False

        url = f"{self.api_url}/repos/{self.repository}/issues/{issue_id}/comments"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, headers=self._headers(), json={"body": body})
        except httpx.HTTPError as exc:
            logger.error("Failed to post GitHub comment to issue #%s: %s", issue_id, exc)
            return False

        if response.status_code >= 300:
            logger.error(
                "GitHub comment to issue #%s returned %s: %s",
                issue_id,
                response.status_code,
                response.text[:300],
            )
            return False

        logger.info("Posted comment to %s#%s", self.repository, issue_id)
        return True

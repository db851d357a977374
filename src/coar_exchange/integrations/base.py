"""Abstract interface to the editorial system that tracks papers under review."""

from abc import ABC, abstractmethod

from coar_exchange.models.paper import PaperRecord


class ReviewCollaborator(ABC):
    """Where notification results are reported and paper data comes from.

    Each paper under review has a tracking issue identified by an integer id.
    """

    @abstractmethod
    async def post_comment(self, issue_id: int, message: str) -> bool:
        """Post a markdown comment to a tracking issue.

        Must not raise: delivery failures are logged and reported as False.
        """
        ...

    @abstractmethod
    async def lookup_issue_by_doi(self, doi: str) -> int | None:
        """Resolve a paper DOI to its tracking issue id."""
        ...

    @abstractmethod
    async def update_external_metadata(self, doi: str, metadata: dict) -> bool:
        """Push review/endorsement metadata onto the paper's record."""
        ...

    @abstractmethod
    async def fetch_paper_by_issue(self, issue_id: int) -> PaperRecord | None:
        """Load the paper behind a tracking issue."""
        ...

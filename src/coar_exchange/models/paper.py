"""Domain record describing a paper under review."""

from pydantic import BaseModel, ConfigDict


class PaperRecord(BaseModel):
    """Paper data used to build outbound review/endorsement requests.

    Mirrors what the NeuroLibre API returns for a review issue.
    """

    model_config = ConfigDict(extra="ignore")

    doi: str | None = None
    issue_id: int | None = None
    repository_url: str | None = None
    url: str | None = None
    title: str | None = None
    editor_orcid: str | None = None
    editor_name: str | None = None

    def missing(self, required: list[str]) -> list[str]:
        """Return the names of required fields that are unset or blank."""
        return [name for name in required if getattr(self, name) in (None, "")]

"""Tests for the GitHub and NeuroLibre collaborators over a mocked HTTP transport."""

import json

import httpx
import pytest

from coar_exchange.integrations.github import GitHubCommentClient
from coar_exchange.integrations.neurolibre import NeurolibreCollaborator


class Recorder:
    def __init__(self, responder):
        self.requests: list[httpx.Request] = []
        self.responder = responder

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)


def github(responder, token="ghp_test"):
    recorder = Recorder(responder)
    client = GitHubCommentClient(
        repository="neurolibre/neurolibre-reviews",
        token=token,
        transport=httpx.MockTransport(recorder),
    )
    return client, recorder


def neurolibre(responder):
    recorder = Recorder(responder)
    comments, _ = github(lambda request: httpx.Response(201))
    collaborator = NeurolibreCollaborator(
        api_url="https://neurolibre.example/papers/",
        secret="s3cret",
        comments=comments,
        transport=httpx.MockTransport(recorder),
    )
    return collaborator, recorder


@pytest.mark.asyncio
async def test_github_posts_comment():
    client, recorder = github(lambda request: httpx.Response(201, json={"id": 1}))

    assert await client.post_comment(42, "hello") is True

    request = recorder.requests[0]
    assert request.method == "POST"
    assert str(request.url) == "https://api.github.com/repos/neurolibre/neurolibre-reviews/issues/42/comments"
    assert request.headers["authorization"] == "Bearer ghp_test"
    assert json.loads(request.content) == {"body": "hello"}


@pytest.mark.asyncio
async def test_github_without_token_skips():
    client, recorder = github(lambda request: httpx.Response(201), token="")

    assert await client.post_comment(42, "hello") is False
    assert recorder.requests == []


@pytest.mark.asyncio
async def test_github_error_status_is_reported_not_raised():
    client, _ = github(lambda request: httpx.Response(404, text="Not Found"))

    assert await client.post_comment(42, "hello") is False


@pytest.mark.asyncio
async def test_github_network_error_is_reported_not_raised():
    def refuse(request):
        raise httpx.ConnectError("refused")

    client, _ = github(refuse)

    assert await client.post_comment(42, "hello") is False


@pytest.mark.asyncio
async def test_lookup_issue_by_doi():
    collaborator, recorder = neurolibre(lambda request: httpx.Response(200, json={"review_issue_id": "27"}))

    assert await collaborator.lookup_issue_by_doi("10.55458/neurolibre.00027") == 27

    request = recorder.requests[0]
    assert request.url.path == "/papers/api_lookup_by_doi"
    assert request.url.params["doi"] == "10.55458/neurolibre.00027"
    assert request.url.params["secret"] == "s3cret"


@pytest.mark.asyncio
async def test_lookup_issue_by_doi_not_found():
    collaborator, _ = neurolibre(lambda request: httpx.Response(404))

    assert await collaborator.lookup_issue_by_doi("10.1/none") is None


@pytest.mark.asyncio
async def test_lookup_issue_by_doi_bad_body():
    collaborator, _ = neurolibre(lambda request: httpx.Response(200, json={"review_issue_id": "abc"}))

    assert await collaborator.lookup_issue_by_doi("10.1/x") is None


@pytest.mark.asyncio
async def test_update_external_metadata():
    collaborator, recorder = neurolibre(lambda request: httpx.Response(200))

    ok = await collaborator.update_external_metadata("10.1/x", {"review_url": "https://r.example/1"})

    assert ok is True
    sent = json.loads(recorder.requests[0].content)
    assert sent == {"secret": "s3cret", "doi": "10.1/x", "review": {"review_url": "https://r.example/1"}}


@pytest.mark.asyncio
async def test_fetch_paper_by_issue():
    collaborator, _ = neurolibre(lambda request: httpx.Response(200, json={
        "doi": "10.55458/x.1",
        "repository_url": "https://github.com/author/paper",
        "editor_orcid": "0000-0002-1825-0097",
        "unexpected": True,
    }))

    paper = await collaborator.fetch_paper_by_issue(42)

    assert paper.doi == "10.55458/x.1"
    assert paper.issue_id == 42
    assert paper.repository_url == "https://github.com/author/paper"


@pytest.mark.asyncio
async def test_fetch_paper_failure_returns_none():
    collaborator, _ = neurolibre(lambda request: httpx.Response(500))

    assert await collaborator.fetch_paper_by_issue(42) is None


@pytest.mark.asyncio
async def test_comments_go_through_github():
    collaborator, recorder = neurolibre(lambda request: httpx.Response(200))

    assert await collaborator.post_comment(42, "hi") is True
    # The papers API is not involved in commenting
    assert recorder.requests == []

import base64
import hashlib
import json

import httpx
import pytest

from portfolio.core.errors import ConflictError, NotFoundError, StoreError
from portfolio.services.github_storage import GitHubStorage
from portfolio.services.image_schema import GalleryImage
from portfolio.services.listing_sync import DocumentListing

PREFIX = "/repos/me/site/contents/"


class FakeRepo:
    """Just enough of the GitHub contents API, keyed by path, with blob SHAs."""

    def __init__(self):
        self.files = {}
        self.requests = []

    @staticmethod
    def sha(data: bytes) -> str:
        return hashlib.sha1(data).hexdigest()

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path[len(PREFIX):]
        if request.method == "GET":
            if path in self.files:
                data = self.files[path]
                return httpx.Response(
                    200,
                    json={
                        "type": "file",
                        "path": path,
                        "sha": self.sha(data),
                        "size": len(data),
                        "encoding": "base64",
                        "content": base64.b64encode(data).decode(),
                    },
                )
            children = [p for p in self.files if p.startswith(path + "/")]
            if children:
                return httpx.Response(
                    200,
                    json=[
                        {"type": "file", "path": p, "sha": self.sha(self.files[p]), "size": len(self.files[p])}
                        for p in children
                    ],
                )
            return httpx.Response(404, json={"message": "Not Found"})
        body = json.loads(request.content)
        current = self.files.get(path)
        if request.method == "PUT":
            if current is not None and body.get("sha") != self.sha(current):
                return httpx.Response(409, json={"message": "sha mismatch"})
            if current is None and body.get("sha"):
                return httpx.Response(422, json={"message": "sha given for new file"})
            data = base64.b64decode(body["content"])
            self.files[path] = data
            return httpx.Response(201 if current is None else 200, json={"content": {"sha": self.sha(data)}})
        if request.method == "DELETE":
            if current is None:
                return httpx.Response(404, json={"message": "Not Found"})
            del self.files[path]
            return httpx.Response(200, json={})
        return httpx.Response(405)


@pytest.fixture
def repo():
    return FakeRepo()


@pytest.fixture
def store(repo):
    return GitHubStorage(
        owner="me",
        repo="site",
        token="t0ken",
        root="public/static",
        transport=httpx.MockTransport(repo),
    )


def test_requires_owner_and_repo():
    with pytest.raises(ValueError):
        GitHubStorage(owner="", repo="site")


def test_put_get_and_version(store, repo):
    obj = store.put(b"abc", "portfolio/nature/a.jpg")
    assert obj.key == "portfolio/nature/a.jpg"
    assert "public/static/portfolio/nature/a.jpg" in repo.files

    blob = store.get("portfolio/nature/a.jpg")
    assert blob.data == b"abc"
    assert blob.version == FakeRepo.sha(b"abc")
    assert repo.requests[0].headers["Authorization"] == "token t0ken"


def test_overwrite_looks_up_current_sha(store):
    store.put(b"one", "doc.json")
    store.put(b"two", "doc.json")
    assert store.get("doc.json").data == b"two"


def test_stale_sha_is_conflict(store):
    store.put(b"one", "doc.json")
    with pytest.raises(ConflictError):
        store.put(b"two", "doc.json", if_match=FakeRepo.sha(b"other"))
    with pytest.raises(ConflictError):
        store.put(b"two", "doc.json", if_none_match=True)


def test_delete_and_missing(store):
    store.put(b"x", "portfolio/nature/a.jpg")
    store.delete("portfolio/nature/a.jpg")
    with pytest.raises(NotFoundError):
        store.delete("portfolio/nature/a.jpg")
    with pytest.raises(NotFoundError):
        store.get("portfolio/nature/a.jpg")


def test_list_directory(store):
    store.put(b"2", "portfolio/nature/b.jpg")
    store.put(b"1", "portfolio/nature/a.jpg")
    assert [o.key for o in store.list("portfolio/nature")] == [
        "portfolio/nature/a.jpg",
        "portfolio/nature/b.jpg",
    ]
    assert store.list("portfolio/travel") == []


def test_server_error_is_store_error():
    store = GitHubStorage(
        owner="me",
        repo="site",
        transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom")),
    )
    with pytest.raises(StoreError):
        store.get("doc.json")


def test_listing_document_over_github(store):
    listing = DocumentListing(store, codec_name="page", path_template="src/app/photo/{category}/page.tsx")
    image = GalleryImage(src="/static/portfolio/nature/a.jpg", width=3, height=2)
    listing.add("nature", image)
    listing.add("nature", GalleryImage(src="/static/portfolio/nature/b.jpg"))
    listing.remove("nature", "/static/portfolio/nature/b.jpg")
    assert listing.read("nature") == [image]


def _rejecting_store(status):
    def handler(request):
        if request.method == "GET":
            return httpx.Response(404, json={"message": "Not Found"})
        return httpx.Response(status, json={"message": "rejected"})

    return GitHubStorage(owner="me", repo="site", transport=httpx.MockTransport(handler))


def test_unconditional_put_rejection_is_store_error():
    with pytest.raises(StoreError):
        _rejecting_store(422).put(b"x" * 10, "portfolio/nature/huge.jpg")


def test_conditional_put_rejection_is_conflict():
    with pytest.raises(ConflictError):
        _rejecting_store(422).put(b"{}", "listings/nature.json", if_none_match=True)

"""GitHub repository as a backing store, through the REST contents API.

Every write is a commit on the configured branch. Overwriting or deleting a
file requires its current blob SHA, which doubles as the version token: a PUT
carrying a stale SHA is rejected by GitHub (409/422) and surfaces here as a
ConflictError.
"""
import base64
import logging
from typing import List, Optional

import httpx

from portfolio.core.errors import ConflictError, NotFoundError, StoreError
from portfolio.services.backing_store import BackingStore, StoredBlob, StoredObject

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"


class GitHubStorage(BackingStore):
    name = "github"

    def __init__(
        self,
        owner: str,
        repo: str,
        branch: str = "main",
        token: str = "",
        api_url: str = "https://api.github.com",
        root: str = "",
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(root)
        if not owner or not repo:
            raise ValueError("GitHub owner and repo must be configured")
        self.owner = owner
        self.repo = repo
        self.branch = branch
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }
        if token:
            headers["Authorization"] = f"token {token}"
        self.client = httpx.Client(
            base_url=api_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        logger.info(f"GitHub storage initialized for {owner}/{repo}@{branch}")

    def _contents_url(self, key: str) -> str:
        return f"/repos/{self.owner}/{self.repo}/contents/{key}"

    def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            return self.client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"GitHub {method} {url} failed: {e}")
            raise StoreError(f"GitHub API unavailable: {e}")

    def _fail(self, resp: httpx.Response, action: str, key: str) -> StoreError:
        logger.error(f"GitHub {action} error for {key}: {resp.status_code} {resp.text[:300]}")
        return StoreError(
            f"GitHub API {action} error: {resp.status_code}",
            details={"status": resp.status_code, "path": key},
        )

    def _meta(self, key: str) -> dict:
        resp = self._request("GET", self._contents_url(key), params={"ref": self.branch})
        if resp.status_code == 404:
            raise NotFoundError(f"Object not found: {key}")
        if resp.status_code != 200:
            raise self._fail(resp, "read", key)
        body = resp.json()
        if isinstance(body, list) or body.get("type") != "file":
            raise NotFoundError(f"Not a file: {key}")
        return body

    def _blob(self, sha: str, key: str) -> bytes:
        # Files over 1 MB come back from the contents API without inline content
        resp = self._request("GET", f"/repos/{self.owner}/{self.repo}/git/blobs/{sha}")
        if resp.status_code != 200:
            raise self._fail(resp, "blob read", key)
        return base64.b64decode(resp.json().get("content", ""))

    def put(self, data, path, content_type="application/octet-stream", if_match=None, if_none_match=False):
        key = self.full_key(path)
        body = {
            "message": f"Update {key}",
            "content": base64.b64encode(data).decode("ascii"),
            "branch": self.branch,
        }
        if if_match is not None:
            body["sha"] = if_match
        elif not if_none_match:
            # Plain overwrite: pick up the current SHA if the file exists
            try:
                body["sha"] = self._meta(key)["sha"]
            except NotFoundError:
                body["message"] = f"Add {key}"
        else:
            body["message"] = f"Add {key}"

        resp = self._request("PUT", self._contents_url(key), json=body)
        conditional = if_match is not None or if_none_match
        if conditional and resp.status_code in (409, 422):
            raise ConflictError(
                f"GitHub rejected write to {key} ({resp.status_code}); file changed concurrently",
                details={"status": resp.status_code, "path": key},
            )
        if resp.status_code not in (200, 201):
            raise self._fail(resp, "upload", key)
        sha = (resp.json().get("content") or {}).get("sha")
        logger.info(f"Committed {key} to {self.owner}/{self.repo}@{self.branch}")
        return StoredObject(key=self.relative_key(key), size=len(data), etag=sha)

    def get(self, path):
        key = self.full_key(path)
        meta = self._meta(key)
        if meta.get("encoding") == "base64" and meta.get("content"):
            data = base64.b64decode(meta["content"])
        elif int(meta.get("size") or 0) == 0:
            data = b""
        else:
            data = self._blob(meta["sha"], key)
        return StoredBlob(data=data, version=meta["sha"])

    def delete(self, path):
        key = self.full_key(path)
        sha = self._meta(key)["sha"]
        resp = self._request(
            "DELETE",
            self._contents_url(key),
            json={"message": f"Delete {key}", "sha": sha, "branch": self.branch},
        )
        if resp.status_code == 404:
            raise NotFoundError(f"Object not found: {key}")
        if resp.status_code in (409, 422):
            raise ConflictError(f"GitHub rejected delete of {key} ({resp.status_code})")
        if resp.status_code != 200:
            raise self._fail(resp, "delete", key)
        logger.info(f"Deleted {key} from {self.owner}/{self.repo}@{self.branch}")

    def list(self, prefix: str) -> List[StoredObject]:
        key = self.full_key(prefix)
        resp = self._request("GET", self._contents_url(key), params={"ref": self.branch})
        if resp.status_code == 404:
            # Folder might not exist yet
            return []
        if resp.status_code != 200:
            raise self._fail(resp, "list", key)
        items = resp.json()
        if not isinstance(items, list):
            return []
        out = [
            StoredObject(
                key=self.relative_key(item["path"]),
                size=int(item.get("size") or 0),
                etag=item.get("sha"),
            )
            for item in items
            if item.get("type") == "file"
        ]
        return sorted(out, key=lambda o: o.key)

    def close(self) -> None:
        self.client.close()

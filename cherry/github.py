"""GitHub REST API client and the steps built on it."""
from __future__ import annotations

import logging
import mimetypes
import os
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlencode, urlparse

import requests

from .context import Context
from .errors import CancellationError, CollaboratorError, HTTPError
from .step import QueryStep, Step

logger = logging.getLogger(__name__)

API_URL = "https://api.github.com"
WEB_URL = "https://github.com"

# Used when the context carries no deadline.
DEFAULT_TIMEOUT = 60

_URI_TEMPLATE_RE = re.compile(r"\{[^}]*\}$")


@dataclass
class ReleaseData:
    """Writable fields of a release."""

    name: str = ""
    tag_name: str = ""
    target: str = ""
    draft: bool = False
    prerelease: bool = False
    body: str = ""

    def to_json(self) -> Dict[str, Any]:
        data = asdict(self)
        data["target_commitish"] = data.pop("target")
        return data


@dataclass
class Asset:
    id: int = 0
    name: str = ""
    label: str = ""
    state: str = ""
    size: int = 0
    content_type: str = ""
    url: str = ""
    download_url: str = ""

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Asset":
        return cls(
            id=data.get("id", 0),
            name=data.get("name", ""),
            label=data.get("label") or "",
            state=data.get("state", ""),
            size=data.get("size", 0),
            content_type=data.get("content_type", ""),
            url=data.get("url", ""),
            download_url=data.get("browser_download_url", ""),
        )


@dataclass
class Release:
    id: int = 0
    name: str = ""
    tag_name: str = ""
    target: str = ""
    draft: bool = False
    prerelease: bool = False
    body: str = ""
    url: str = ""
    html_url: str = ""
    upload_url: str = ""
    assets: List[Asset] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Release":
        return cls(
            id=data.get("id", 0),
            name=data.get("name") or "",
            tag_name=data.get("tag_name", ""),
            target=data.get("target_commitish", ""),
            draft=bool(data.get("draft", False)),
            prerelease=bool(data.get("prerelease", False)),
            body=data.get("body") or "",
            url=data.get("url", ""),
            html_url=data.get("html_url", ""),
            upload_url=data.get("upload_url", ""),
            assets=[Asset.from_json(a) for a in data.get("assets") or []],
        )


class GitHubClient:
    """Client for the GitHub v3 REST API.

    Every call is bounded by the remaining deadline of the context it runs
    under, and any status other than the expected one raises
    :class:`~cherry.errors.HTTPError` carrying method, path, status and body.
    """

    def __init__(
        self,
        token: str,
        session: Optional[requests.Session] = None,
        api_url: str = API_URL,
        web_url: str = WEB_URL,
    ) -> None:
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.web_url = web_url.rstrip("/")
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        h = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "cherry",
        }
        if self.token:
            h["Authorization"] = f"token {self.token}"
        return h

    def _request(
        self,
        ctx: Context,
        method: str,
        url: str,
        expected: int,
        json: Optional[Dict[str, Any]] = None,
        data: Any = None,
        headers: Optional[Dict[str, str]] = None,
        stream: bool = False,
    ) -> requests.Response:
        ctx.check()
        h = self._headers()
        if headers:
            h.update(headers)
        timeout = ctx.remaining()
        if timeout is None:
            timeout = DEFAULT_TIMEOUT

        logger.debug(f"{method} {url}")
        try:
            resp = self.session.request(
                method=method,
                url=url,
                json=json,
                data=data,
                headers=h,
                timeout=timeout,
                stream=stream,
            )
        except requests.exceptions.Timeout as e:
            err = ctx.err()
            if err is not None:
                raise CancellationError(f"{method} {url}: {err}") from e
            raise CollaboratorError(f"{method} {url}: {e}") from e
        except requests.exceptions.RequestException as e:
            raise CollaboratorError(f"{method} {url}: {e}") from e

        if resp.status_code != expected:
            body = resp.text
            resp.close()
            raise HTTPError(method, urlparse(url).path, resp.status_code, body)
        return resp

    def _protection_url(self, repo: str, branch: str) -> str:
        return f"{self.api_url}/repos/{repo}/branches/{branch}/protection/enforce_admins"

    def get_branch_protection(self, ctx: Context, repo: str, branch: str) -> bool:
        resp = self._request(ctx, "GET", self._protection_url(repo, branch), 200)
        return bool(resp.json().get("enabled", False))

    def set_branch_protection(self, ctx: Context, repo: str, branch: str, enabled: bool) -> None:
        """Enable or disable enforcing branch protection for administrators."""
        if enabled:
            self._request(ctx, "POST", self._protection_url(repo, branch), 200)
        else:
            self._request(ctx, "DELETE", self._protection_url(repo, branch), 204)

    def list_releases(self, ctx: Context, repo: str) -> List[Release]:
        resp = self._request(ctx, "GET", f"{self.api_url}/repos/{repo}/releases", 200)
        return [Release.from_json(r) for r in resp.json()]

    def create_release(self, ctx: Context, repo: str, data: ReleaseData) -> Release:
        resp = self._request(ctx, "POST", f"{self.api_url}/repos/{repo}/releases", 201, json=data.to_json())
        return Release.from_json(resp.json())

    def edit_release(self, ctx: Context, repo: str, release_id: int, data: ReleaseData) -> Release:
        resp = self._request(ctx, "PATCH", f"{self.api_url}/repos/{repo}/releases/{release_id}", 200, json=data.to_json())
        return Release.from_json(resp.json())

    def delete_release(self, ctx: Context, repo: str, release_id: int) -> None:
        self._request(ctx, "DELETE", f"{self.api_url}/repos/{repo}/releases/{release_id}", 204)

    def get_latest_release(self, ctx: Context, repo: str) -> Release:
        resp = self._request(ctx, "GET", f"{self.api_url}/repos/{repo}/releases/latest", 200)
        return Release.from_json(resp.json())

    def upload_asset(self, ctx: Context, upload_url: str, path: str, name: Optional[str] = None) -> Asset:
        """Upload ``path`` to a release.

        ``upload_url`` is the release's ``upload_url``; its URI template suffix
        (``{?name,label}``) is dropped.
        """
        name = name or os.path.basename(path)
        url = _URI_TEMPLATE_RE.sub("", upload_url)
        content_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
        with open(path, "rb") as fh:
            resp = self._request(
                ctx,
                "POST",
                f"{url}?{urlencode({'name': name})}",
                201,
                data=fh,
                headers={"Content-Type": content_type, "Content-Length": str(os.path.getsize(path))},
            )
        return Asset.from_json(resp.json())

    def delete_asset(self, ctx: Context, repo: str, asset_id: int) -> None:
        self._request(ctx, "DELETE", f"{self.api_url}/repos/{repo}/releases/assets/{asset_id}", 204)

    def download_asset(self, ctx: Context, repo: str, tag: str, name: str) -> requests.Response:
        """Open a streamed download of a release asset. The caller closes it."""
        url = f"{self.web_url}/{repo}/releases/download/{tag}/{name}"
        return self._request(ctx, "GET", url, 200, stream=True)


@dataclass
class ReleaseResult:
    release: Release = field(default_factory=Release)


class GitHubBranchProtection(Step):
    """Toggle "enforce for administrators" on a branch.

    Config:
    - repo: ``owner/name``
    - branch: protected branch
    - enabled: the state ``run`` applies; ``revert`` applies the opposite
    """

    def __init__(
        self,
        client: GitHubClient,
        repo: str = "",
        branch: str = "",
        enabled: bool = False,
        id: Optional[str] = None,
    ) -> None:
        super().__init__(id)
        self.client = client
        self.repo = repo
        self.branch = branch
        self.enabled = enabled

    def dry(self, ctx: Context) -> None:
        self.client.get_branch_protection(ctx, self.repo, self.branch)

    def run(self, ctx: Context) -> None:
        self.client.set_branch_protection(ctx, self.repo, self.branch, self.enabled)

    def revert(self, ctx: Context) -> None:
        self.client.set_branch_protection(ctx, self.repo, self.branch, not self.enabled)


class GitHubCreateRelease(Step):
    """Create a release; ``revert`` deletes it."""

    def __init__(
        self,
        client: GitHubClient,
        repo: str = "",
        data: Optional[ReleaseData] = None,
        id: Optional[str] = None,
    ) -> None:
        super().__init__(id)
        self.client = client
        self.repo = repo
        self.data = data or ReleaseData()
        self.result = ReleaseResult()

    def dry(self, ctx: Context) -> None:
        self.client.list_releases(ctx, self.repo)

    def run(self, ctx: Context) -> None:
        self.result.release = self.client.create_release(ctx, self.repo, self.data)

    def revert(self, ctx: Context) -> None:
        self.client.delete_release(ctx, self.repo, self.result.release.id)


class GitHubEditRelease(Step):
    """Edit an existing release.

    Reverting is a no-op: a draft release is deleted by the step that created it.
    """

    def __init__(
        self,
        client: GitHubClient,
        repo: str = "",
        release_id: int = 0,
        data: Optional[ReleaseData] = None,
        id: Optional[str] = None,
    ) -> None:
        super().__init__(id)
        self.client = client
        self.repo = repo
        self.release_id = release_id
        self.data = data or ReleaseData()
        self.result = ReleaseResult()

    def dry(self, ctx: Context) -> None:
        self.client.list_releases(ctx, self.repo)

    def run(self, ctx: Context) -> None:
        self.result.release = self.client.edit_release(ctx, self.repo, self.release_id, self.data)


@dataclass
class UploadResult:
    assets: List[Asset] = field(default_factory=list)


class GitHubUploadAssets(Step):
    """Upload files to a release, one worker thread per file.

    All uploads are awaited before the step returns. When several fail, the
    error of the first file (in ``files`` order) is raised.
    """

    def __init__(
        self,
        client: GitHubClient,
        repo: str = "",
        upload_url: str = "",
        files: Sequence[str] = (),
        id: Optional[str] = None,
    ) -> None:
        super().__init__(id)
        self.client = client
        self.repo = repo
        self.upload_url = upload_url
        self.files: List[str] = list(files)
        self.result = UploadResult()

    def dry(self, ctx: Context) -> None:
        self.client.list_releases(ctx, self.repo)

    def run(self, ctx: Context) -> None:
        self.result.assets = []
        if not self.files:
            return

        with ThreadPoolExecutor(max_workers=len(self.files)) as pool:
            futures = [pool.submit(self.client.upload_asset, ctx, self.upload_url, f) for f in self.files]

        errors: List[BaseException] = []
        for f, fut in zip(self.files, futures):
            err = fut.exception()
            if err is None:
                self.result.assets.append(fut.result())
            else:
                logger.error(f"upload {f} failed: {err}")
                errors.append(err)
        if errors:
            raise errors[0]

    def revert(self, ctx: Context) -> None:
        for asset in self.result.assets:
            self.client.delete_asset(ctx, self.repo, asset.id)


class GitHubGetLatestRelease(QueryStep):
    def __init__(self, client: GitHubClient, repo: str = "", id: Optional[str] = None) -> None:
        super().__init__(id)
        self.client = client
        self.repo = repo
        self.result = ReleaseResult()

    def run(self, ctx: Context) -> None:
        self.result.release = self.client.get_latest_release(ctx, self.repo)


@dataclass
class DownloadResult:
    size: int = 0


class GitHubDownloadAsset(Step):
    """Download a release asset over a local file.

    ``revert`` puts back the file content that ``run`` replaced, or removes the
    file when there was none.
    """

    CHUNK_SIZE = 64 * 1024

    def __init__(
        self,
        client: GitHubClient,
        repo: str = "",
        tag: str = "",
        asset_name: str = "",
        filepath: str = "",
        id: Optional[str] = None,
    ) -> None:
        super().__init__(id)
        self.client = client
        self.repo = repo
        self.tag = tag
        self.asset_name = asset_name
        self.filepath = filepath
        self.result = DownloadResult()
        self._previous: Optional[bytes] = None

    def dry(self, ctx: Context) -> None:
        self.client.download_asset(ctx, self.repo, self.tag, self.asset_name).close()

    def run(self, ctx: Context) -> None:
        resp = self.client.download_asset(ctx, self.repo, self.tag, self.asset_name)
        try:
            if os.path.exists(self.filepath):
                with open(self.filepath, "rb") as fh:
                    self._previous = fh.read()
            size = 0
            with open(self.filepath, "wb") as fh:
                for chunk in resp.iter_content(chunk_size=self.CHUNK_SIZE):
                    if chunk:
                        fh.write(chunk)
                        size += len(chunk)
            if self._previous is None:
                os.chmod(self.filepath, 0o755)
        finally:
            resp.close()
        self.result.size = size

    def revert(self, ctx: Context) -> None:
        if self._previous is None:
            os.remove(self.filepath)
            return
        with open(self.filepath, "wb") as fh:
            fh.write(self._previous)

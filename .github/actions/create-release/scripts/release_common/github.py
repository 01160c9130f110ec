"""Thin GitHub REST client covering the calls the release helper needs.

The client wraps a single :class:`httpx.Client` scoped to one repository.
Every non-success response is raised as :class:`GitHubApiError` carrying the
status code, so callers can tell a missing ref (``404``) apart from other
failures.
"""

from __future__ import annotations

import dataclasses
import logging
import typing as typ
from urllib.parse import quote

import httpx

from .errors import GitHubApiError, InvalidParameterError

if typ.TYPE_CHECKING:
    from pathlib import Path
    from types import TracebackType

__all__ = [
    "API_URL",
    "Asset",
    "GitHubClient",
    "GitRef",
    "Release",
    "ReleaseApi",
    "Repository",
]

logger = logging.getLogger(__name__)

API_URL = "https://api.github.com"
_API_VERSION = "2022-11-28"
_USER_AGENT = "create-release-action"
_REQUEST_TIMEOUT = 30.0
_PAGE_SIZE = 100
_ERROR_DETAIL_LIMIT = 1024

JsonObject: typ.TypeAlias = dict[str, typ.Any]


@dataclasses.dataclass(frozen=True, slots=True)
class Repository:
    """Coordinates of the repository that receives the release."""

    owner: str
    name: str

    @classmethod
    def parse(cls, full_name: str) -> Repository:
        """Split ``owner/repo`` into a :class:`Repository`."""
        parts = full_name.strip().split("/")
        if len(parts) != 2 or not all(parts):  # noqa: PLR2004
            msg = f"Repository '{full_name}' must be in owner/repo form"
            raise InvalidParameterError("repository", msg)
        return cls(owner=parts[0], name=parts[1])

    def __str__(self) -> str:
        return f"{self.owner}/{self.name}"


@dataclasses.dataclass(frozen=True, slots=True)
class GitRef:
    """A git reference as reported by the git database API."""

    ref: str
    sha: str
    object_type: str

    @classmethod
    def from_payload(cls, data: JsonObject) -> GitRef:
        target = data.get("object") or {}
        return cls(
            ref=str(data["ref"]),
            sha=str(target["sha"]),
            object_type=str(target.get("type", "")),
        )


@dataclasses.dataclass(frozen=True, slots=True)
class Release:
    """Subset of the release resource used by the helper."""

    id: int
    tag_name: str
    name: str | None
    body: str | None
    draft: bool
    prerelease: bool
    upload_url: str

    @classmethod
    def from_payload(cls, data: JsonObject) -> Release:
        return cls(
            id=int(data["id"]),
            tag_name=str(data["tag_name"]),
            name=data.get("name"),
            body=data.get("body"),
            draft=bool(data.get("draft", False)),
            prerelease=bool(data.get("prerelease", False)),
            upload_url=str(data.get("upload_url", "")),
        )


@dataclasses.dataclass(frozen=True, slots=True)
class Asset:
    """An asset attached to a release."""

    id: int
    name: str
    size: int

    @classmethod
    def from_payload(cls, data: JsonObject) -> Asset:
        return cls(
            id=int(data["id"]),
            name=str(data["name"]),
            size=int(data.get("size", 0)),
        )


class ReleaseApi(typ.Protocol):
    """Remote operations the reconciler relies on."""

    def get_ref(self, ref: str) -> GitRef: ...

    def create_ref(self, ref: str, sha: str) -> GitRef: ...

    def update_ref(self, ref: str, sha: str, *, force: bool = True) -> GitRef: ...

    def delete_ref(self, ref: str) -> None: ...

    def create_tag_object(self, tag: str, message: str, sha: str) -> str: ...

    def list_releases(self) -> list[Release]: ...

    def create_release(  # noqa: PLR0913
        self,
        *,
        tag_name: str,
        name: str,
        body: str,
        draft: bool,
        prerelease: bool,
        discussion_category_name: str | None = None,
    ) -> Release: ...

    def delete_release(self, release_id: int) -> None: ...

    def list_release_assets(self, release_id: int) -> list[Asset]: ...

    def delete_release_asset(self, asset_id: int) -> None: ...

    def upload_release_asset(
        self, release: Release, *, name: str, path: Path, size: int
    ) -> Asset: ...


def _truncate_text(value: str, limit: int, *, suffix: str = "…") -> str:
    """Return ``value`` truncated to ``limit`` characters with ``suffix``."""
    if len(value) <= limit:
        return value
    return value[:limit] + suffix


def _extract_error_detail(response: httpx.Response) -> str:
    """Return a short description of a failed response for error messages."""
    try:
        text = response.text
    except httpx.StreamError:  # pragma: no cover - unexpected streaming failure
        text = ""
    detail = text.strip() or response.reason_phrase or ""
    return _truncate_text(detail, _ERROR_DETAIL_LIMIT)


def _upload_endpoint(upload_url: str) -> str:
    """Strip the RFC 6570 ``{?name,label}`` suffix from ``upload_url``."""
    endpoint = upload_url.split("{", 1)[0]
    if not endpoint:
        msg = "Release payload is missing upload_url"
        raise GitHubApiError(msg)
    return endpoint


class GitHubClient:
    """Perform repository-scoped GitHub REST calls.

    Parameters
    ----------
    token
        Token sent as a bearer credential with every request.
    repository
        Repository every call is scoped to.
    base_url
        API root, overridable for GitHub Enterprise Server.
    transport
        Optional ``httpx`` transport, used by tests to stub the network.
    """

    def __init__(
        self,
        token: str,
        repository: Repository,
        *,
        base_url: str = API_URL,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.repository = repository
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": _API_VERSION,
            "User-Agent": _USER_AGENT,
        }
        self._client = httpx.Client(
            base_url=base_url,
            headers=headers,
            timeout=httpx.Timeout(_REQUEST_TIMEOUT),
            transport=transport,
        )
        self._prefix = f"/repos/{repository.owner}/{repository.name}"

    def __enter__(self) -> GitHubClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Release the underlying connection pool."""
        self._client.close()

    def _request(
        self, method: str, url: str, **kwargs: typ.Any
    ) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.RequestError as exc:
            msg = f"Failed to reach GitHub API ({method} {url}): {exc!s}"
            raise GitHubApiError(msg) from exc
        if response.is_success:
            return response
        status = response.status_code
        detail = _extract_error_detail(response)
        msg = f"GitHub API {method} {url} failed with status {status}: {detail}"
        raise GitHubApiError(msg, status_code=status)

    def _paginate(self, url: str) -> typ.Iterator[JsonObject]:
        next_url: str | None = url
        params: dict[str, int] | None = {"per_page": _PAGE_SIZE}
        while next_url:
            response = self._request("GET", next_url, params=params)
            yield from response.json()
            next_url = response.links.get("next", {}).get("url")
            # The ``next`` link already carries the query string.
            params = None

    def _git_ref_path(self, ref: str) -> str:
        return quote(ref, safe="/")

    def get_ref(self, ref: str) -> GitRef:
        """Return the reference ``ref`` (for example ``tags/v1.0.0``)."""
        url = f"{self._prefix}/git/ref/{self._git_ref_path(ref)}"
        return GitRef.from_payload(self._request("GET", url).json())

    def create_ref(self, ref: str, sha: str) -> GitRef:
        """Create ``refs/<ref>`` pointing at ``sha``."""
        payload = {"ref": f"refs/{ref}", "sha": sha}
        response = self._request("POST", f"{self._prefix}/git/refs", json=payload)
        return GitRef.from_payload(response.json())

    def update_ref(self, ref: str, sha: str, *, force: bool = True) -> GitRef:
        """Move ``ref`` to ``sha``."""
        url = f"{self._prefix}/git/refs/{self._git_ref_path(ref)}"
        response = self._request("PATCH", url, json={"sha": sha, "force": force})
        return GitRef.from_payload(response.json())

    def delete_ref(self, ref: str) -> None:
        """Delete ``ref``."""
        url = f"{self._prefix}/git/refs/{self._git_ref_path(ref)}"
        self._request("DELETE", url)

    def create_tag_object(self, tag: str, message: str, sha: str) -> str:
        """Create an annotated tag object for commit ``sha`` and return its sha."""
        payload = {"tag": tag, "message": message, "object": sha, "type": "commit"}
        response = self._request("POST", f"{self._prefix}/git/tags", json=payload)
        return str(response.json()["sha"])

    def list_releases(self) -> list[Release]:
        """Return every release in the repository."""
        return [
            Release.from_payload(item)
            for item in self._paginate(f"{self._prefix}/releases")
        ]

    def create_release(  # noqa: PLR0913
        self,
        *,
        tag_name: str,
        name: str,
        body: str,
        draft: bool,
        prerelease: bool,
        discussion_category_name: str | None = None,
    ) -> Release:
        """Create a release for the existing tag ``tag_name``."""
        payload: JsonObject = {
            "tag_name": tag_name,
            "name": name,
            "body": body,
            "draft": draft,
            "prerelease": prerelease,
        }
        if discussion_category_name:
            payload["discussion_category_name"] = discussion_category_name
        response = self._request("POST", f"{self._prefix}/releases", json=payload)
        return Release.from_payload(response.json())

    def delete_release(self, release_id: int) -> None:
        """Delete the release ``release_id``; its tag is left in place."""
        self._request("DELETE", f"{self._prefix}/releases/{release_id}")

    def list_release_assets(self, release_id: int) -> list[Asset]:
        """Return the assets currently attached to ``release_id``."""
        url = f"{self._prefix}/releases/{release_id}/assets"
        return [Asset.from_payload(item) for item in self._paginate(url)]

    def delete_release_asset(self, asset_id: int) -> None:
        """Delete the release asset ``asset_id``."""
        self._request("DELETE", f"{self._prefix}/releases/assets/{asset_id}")

    def upload_release_asset(
        self, release: Release, *, name: str, path: Path, size: int
    ) -> Asset:
        """Stream ``path`` to ``release`` as an asset called ``name``."""
        headers = {
            "Content-Type": "application/octet-stream",
            "Content-Length": str(size),
        }
        endpoint = _upload_endpoint(release.upload_url)
        logger.debug("POST %s name=%s (%d bytes)", endpoint, name, size)
        with path.open("rb") as handle:
            response = self._request(
                "POST",
                endpoint,
                params={"name": name},
                headers=headers,
                content=handle,
            )
        return Asset.from_payload(response.json())

"""
Pytest configuration and shared fixtures.

Provides an in-memory GitHub (served through httpx.MockTransport) that
implements the Git Data API endpoints treesync uses, a recording sleep so
pacing and backoff can be asserted without waiting, and helpers to connect a
client or service against the fake.
"""

import base64
import hashlib
import itertools
import json
import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import httpx
import pytest

from treesync.core.config import clear_cache
from treesync.core.config.models import GitHubSettings, TreeSyncConfig
from treesync.core.github.client import GitHubClient
from treesync.core.github.models import Credentials
from treesync.core.github.ratelimit import RetryConfig
from treesync.core.sync.service import TreeSyncService

API_URL = "https://api.github.test"
WEB_URL = "https://github.test"
LOGIN = "octo"

ENV_VARS = (
    "TREESYNC_API_URL",
    "TREESYNC_DEFAULT_BRANCH",
    "TREESYNC_MAX_RETRIES",
    "TREESYNC_TIMEOUT",
    "TREESYNC_GITHUB_TOKEN",
    "TREESYNC_GITHUB_USER",
    "GITHUB_TOKEN",
    "GITHUB_USER",
)


def git_blob_sha(content: bytes) -> str:
    return hashlib.sha1(b"blob %d\0" % len(content) + content).hexdigest()


# ==============================================================================
# Fake GitHub
# ==============================================================================


@dataclass
class FakeRepo:
    """State of one repository on the fake host."""

    owner: str
    name: str
    default_branch: str = "main"
    private: bool = True
    description: str = ""
    blobs: dict[str, bytes] = field(default_factory=dict)
    trees: dict[str, list[dict[str, str]]] = field(default_factory=dict)
    commits: dict[str, dict[str, Any]] = field(default_factory=dict)
    refs: dict[str, str] = field(default_factory=dict)

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    def files_at(self, branch: str) -> dict[str, bytes]:
        """Path -> bytes of the tree the branch points at."""
        commit = self.commits[self.refs[branch]]
        return {
            entry["path"]: self.blobs[entry["sha"]] for entry in self.trees[commit["tree"]]
        }

    def head(self, branch: str) -> dict[str, Any]:
        return self.commits[self.refs[branch]]


@dataclass
class _Failure:
    method: str
    pattern: str
    status: int
    body: dict[str, Any] | None
    headers: dict[str, str]
    times: int | None
    network: bool = False
    raw: bytes | None = None


class FakeGitHub:
    """
    In-memory GitHub speaking the subset of the REST API treesync uses.

    Every request is recorded in ``requests`` as ``(method, path)`` with the
    leading slash stripped. Use ``fail()`` to make matching requests return
    an error (optionally a limited number of times).
    """

    def __init__(self, login: str = LOGIN) -> None:
        self.login = login
        self.repos: dict[str, FakeRepo] = {}
        self.requests: list[tuple[str, str]] = []
        self.bodies: list[dict[str, Any] | None] = []
        self.headers: list[httpx.Headers] = []
        self._failures: list[_Failure] = []
        self._counter = itertools.count(1)
        self.transport = httpx.MockTransport(self.handle)

    # ------------------------------------------------------------------
    # Test helpers
    # ------------------------------------------------------------------

    def seed_repo(
        self,
        name: str,
        files: dict[str, bytes | str] | None = None,
        *,
        owner: str | None = None,
        branch: str = "main",
        modes: dict[str, str] | None = None,
    ) -> FakeRepo:
        """Create a repository whose ``branch`` holds ``files``."""
        repo = FakeRepo(owner=owner or self.login, name=name, default_branch=branch)
        self.repos[repo.full_name] = repo
        entries = []
        for path, content in (files or {}).items():
            data = content.encode("utf-8") if isinstance(content, str) else content
            sha = self._store_blob(repo, data)
            mode = (modes or {}).get(path, "100644")
            entries.append({"path": path, "mode": mode, "type": "blob", "sha": sha})
        tree_sha = self._store_tree(repo, entries)
        repo.refs[branch] = self._store_commit(repo, "Initial commit", tree_sha, [])
        return repo

    def add_branch(self, repo: FakeRepo, branch: str, files: dict[str, bytes | str]) -> None:
        """Point ``branch`` at a new commit holding ``files``."""
        entries = []
        for path, content in files.items():
            data = content.encode("utf-8") if isinstance(content, str) else content
            sha = self._store_blob(repo, data)
            entries.append({"path": path, "mode": "100644", "type": "blob", "sha": sha})
        tree_sha = self._store_tree(repo, entries)
        parent = repo.refs.get(repo.default_branch)
        repo.refs[branch] = self._store_commit(
            repo, f"Seed {branch}", tree_sha, [parent] if parent else []
        )

    def fail(
        self,
        method: str,
        pattern: str,
        status: int = 500,
        body: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        times: int | None = None,
    ) -> None:
        """Make requests whose path contains ``pattern`` fail."""
        self._failures.append(
            _Failure(method.upper(), pattern, status, body, headers or {}, times)
        )

    def fail_network(self, method: str, pattern: str, times: int | None = None) -> None:
        """Make matching requests raise a connection error."""
        self._failures.append(
            _Failure(method.upper(), pattern, 0, None, {}, times, network=True)
        )

    def respond_raw(
        self,
        method: str,
        pattern: str,
        content: bytes,
        status: int = 200,
        times: int | None = None,
    ) -> None:
        """Answer matching requests with ``content`` verbatim (e.g. a proxy page)."""
        self._failures.append(
            _Failure(method.upper(), pattern, status, None, {}, times, raw=content)
        )

    def rate_limit(
        self,
        method: str,
        pattern: str,
        times: int | None = None,
        headers: dict[str, str] | None = None,
        status: int = 403,
    ) -> None:
        """Answer matching requests with a secondary rate limit."""
        self.fail(
            method,
            pattern,
            status=status,
            body={"message": "You have exceeded a secondary rate limit."},
            headers=headers,
            times=times,
        )

    def count(self, method: str, pattern: str = "") -> int:
        return sum(
            1 for m, path in self.requests if m == method.upper() and pattern in path
        )

    def writes(self) -> list[tuple[str, str]]:
        return [(m, p) for m, p in self.requests if m in ("POST", "PATCH")]

    # ------------------------------------------------------------------
    # Object storage
    # ------------------------------------------------------------------

    def _store_blob(self, repo: FakeRepo, content: bytes) -> str:
        sha = git_blob_sha(content)
        repo.blobs[sha] = content
        return sha

    def _store_tree(self, repo: FakeRepo, entries: list[dict[str, str]]) -> str:
        sha = hashlib.sha1(json.dumps(entries, sort_keys=True).encode()).hexdigest()
        repo.trees[sha] = [dict(entry) for entry in entries]
        return sha

    def _store_commit(
        self, repo: FakeRepo, message: str, tree_sha: str, parents: list[str]
    ) -> str:
        seed = f"{tree_sha}:{parents}:{message}:{next(self._counter)}"
        sha = hashlib.sha1(seed.encode()).hexdigest()
        repo.commits[sha] = {"tree": tree_sha, "parents": parents, "message": message}
        return sha

    # ------------------------------------------------------------------
    # Request handling
    # ------------------------------------------------------------------

    def handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.lstrip("/")
        method = request.method
        body = json.loads(request.content) if request.content else None
        self.requests.append((method, path))
        self.bodies.append(body)
        self.headers.append(request.headers)

        for failure in self._failures:
            if failure.method == method and failure.pattern in path and failure.times != 0:
                if failure.times is not None:
                    failure.times -= 1
                if failure.network:
                    raise httpx.ConnectError("connection refused", request=request)
                if failure.raw is not None:
                    return httpx.Response(failure.status, content=failure.raw)
                return httpx.Response(
                    failure.status,
                    json=failure.body if failure.body is not None else {"message": "boom"},
                    headers=failure.headers,
                )

        if path == "user" and method == "GET":
            return httpx.Response(200, json={"login": self.login})
        if path == "user/repos" and method == "POST":
            return self._create_repo(body or {})

        parts = path.split("/")
        if len(parts) < 3 or parts[0] != "repos":
            return _not_found()
        repo = self.repos.get(f"{parts[1]}/{parts[2]}")
        if repo is None:
            return _not_found()
        rest = "/".join(parts[3:])

        if not rest and method == "GET":
            return httpx.Response(200, json=self._repo_payload(repo))
        return self._route(repo, method, rest, body or {})

    def _route(
        self, repo: FakeRepo, method: str, rest: str, body: dict[str, Any]
    ) -> httpx.Response:
        if rest.startswith("git/ref/heads/") and method == "GET":
            branch = rest[len("git/ref/heads/"):]
            if branch not in repo.refs:
                return _not_found()
            return httpx.Response(
                200,
                json={
                    "ref": f"refs/heads/{branch}",
                    "object": {"sha": repo.refs[branch], "type": "commit"},
                },
            )

        if rest == "git/refs" and method == "POST":
            branch = body["ref"].removeprefix("refs/heads/")
            if branch in repo.refs:
                return _unprocessable("Reference already exists")
            if body["sha"] not in repo.commits:
                return _unprocessable("Object does not exist")
            repo.refs[branch] = body["sha"]
            return httpx.Response(201, json={"ref": body["ref"], "object": {"sha": body["sha"]}})

        if rest.startswith("git/refs/heads/") and method == "PATCH":
            branch = rest[len("git/refs/heads/"):]
            if branch not in repo.refs:
                return _unprocessable("Reference does not exist")
            repo.refs[branch] = body["sha"]
            return httpx.Response(200, json={"ref": f"refs/heads/{branch}", "object": {"sha": body["sha"]}})

        if rest.startswith("git/commits/") and method == "GET":
            sha = rest[len("git/commits/"):]
            commit = repo.commits.get(sha)
            if commit is None:
                return _not_found()
            return httpx.Response(200, json=self._commit_payload(sha, commit))

        if rest == "git/commits" and method == "POST":
            if body["tree"] not in repo.trees:
                return _unprocessable("Tree SHA does not exist")
            sha = self._store_commit(repo, body["message"], body["tree"], body["parents"])
            return httpx.Response(201, json=self._commit_payload(sha, repo.commits[sha]))

        if rest.startswith("commits/") and method == "GET":
            name = rest[len("commits/"):]
            sha = repo.refs.get(name, name)
            commit = repo.commits.get(sha)
            if commit is None:
                return _unprocessable(f"No commit found for SHA: {name}", status=404)
            return httpx.Response(
                200,
                json={"sha": sha, "commit": {"message": commit["message"], "tree": {"sha": commit["tree"]}}},
            )

        if rest.startswith("git/trees/") and method == "GET":
            sha = rest[len("git/trees/"):]
            entries = repo.trees.get(sha)
            if entries is None:
                return _not_found()
            return httpx.Response(
                200, json={"sha": sha, "tree": self._listing(repo, entries), "truncated": False}
            )

        if rest == "git/trees" and method == "POST":
            if "base_tree" in body:
                return _unprocessable("base_tree is not supported by this fake")
            for entry in body["tree"]:
                if entry["sha"] not in repo.blobs:
                    return _unprocessable(f"tree.sha {entry['sha']} is not a valid blob")
            sha = self._store_tree(repo, body["tree"])
            return httpx.Response(201, json={"sha": sha})

        if rest == "git/blobs" and method == "POST":
            content = base64.b64decode(body["content"])
            sha = self._store_blob(repo, content)
            return httpx.Response(201, json={"sha": sha, "url": f"{API_URL}/blobs/{sha}"})

        if rest.startswith("git/blobs/") and method == "GET":
            sha = rest[len("git/blobs/"):]
            if sha not in repo.blobs:
                return _not_found()
            encoded = base64.encodebytes(repo.blobs[sha]).decode("ascii")
            return httpx.Response(
                200,
                json={"sha": sha, "content": encoded, "encoding": "base64", "size": len(repo.blobs[sha])},
            )

        if rest == "pulls" and method == "POST":
            head_branch = body["head"].split(":", 1)[-1]
            if head_branch not in repo.refs or body["base"] not in repo.refs:
                return _unprocessable("Validation Failed")
            number = next(self._counter)
            return httpx.Response(
                201,
                json={
                    "html_url": f"{WEB_URL}/{repo.full_name}/pull/{number}",
                    "number": number,
                    "title": body["title"],
                    "state": "open",
                },
            )

        return _not_found()

    def _create_repo(self, body: dict[str, Any]) -> httpx.Response:
        full_name = f"{self.login}/{body['name']}"
        if full_name in self.repos:
            return _unprocessable("name already exists on this account")
        files = {"README.md": f"# {body['name']}\n"} if body.get("auto_init") else {}
        repo = self.seed_repo(body["name"], files)
        repo.private = bool(body.get("private"))
        repo.description = body.get("description", "")
        return httpx.Response(201, json=self._repo_payload(repo))

    def _repo_payload(self, repo: FakeRepo) -> dict[str, Any]:
        return {
            "name": repo.name,
            "full_name": repo.full_name,
            "html_url": f"{WEB_URL}/{repo.full_name}",
            "default_branch": repo.default_branch,
            "private": repo.private,
            "description": repo.description,
        }

    @staticmethod
    def _commit_payload(sha: str, commit: dict[str, Any]) -> dict[str, Any]:
        return {
            "sha": sha,
            "message": commit["message"],
            "tree": {"sha": commit["tree"]},
            "parents": [{"sha": parent} for parent in commit["parents"]],
        }

    @staticmethod
    def _listing(repo: FakeRepo, entries: list[dict[str, str]]) -> list[dict[str, Any]]:
        """Recursive listing: blobs plus the directory entries a real host adds."""
        listing: list[dict[str, Any]] = []
        seen_dirs: set[str] = set()
        for entry in entries:
            parts = entry["path"].split("/")[:-1]
            for depth in range(1, len(parts) + 1):
                directory = "/".join(parts[:depth])
                if directory not in seen_dirs:
                    seen_dirs.add(directory)
                    listing.append(
                        {
                            "path": directory,
                            "mode": "040000",
                            "type": "tree",
                            "sha": hashlib.sha1(directory.encode()).hexdigest(),
                        }
                    )
            listing.append({**entry, "size": len(repo.blobs[entry["sha"]])})
        return listing


def _not_found() -> httpx.Response:
    return httpx.Response(404, json={"message": "Not Found"})


def _unprocessable(message: str, status: int = 422) -> httpx.Response:
    return httpx.Response(status, json={"message": message})


# ==============================================================================
# Timing Fixtures
# ==============================================================================


class RecordingSleep:
    """Awaitable sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


# ==============================================================================
# Remote Fixtures
# ==============================================================================


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def github_settings() -> GitHubSettings:
    return GitHubSettings(api_url=API_URL, web_url=WEB_URL)


@pytest.fixture
def config(github_settings: GitHubSettings) -> TreeSyncConfig:
    return TreeSyncConfig(github=github_settings)


@pytest.fixture
def credentials() -> Credentials:
    return Credentials(token="ghp_test", account=LOGIN)


@pytest.fixture
def make_client(
    fake_github: FakeGitHub, github_settings: GitHubSettings, sleep: RecordingSleep
) -> Callable[..., GitHubClient]:
    """Factory for GitHubClient instances bound to the fake."""

    def _make(retry: RetryConfig | None = None) -> GitHubClient:
        return GitHubClient.connect(
            "ghp_test",
            github_settings,
            retry,
            transport=fake_github.transport,
            sleep=sleep,
        )

    return _make


@pytest.fixture
def connect(
    fake_github: FakeGitHub,
    config: TreeSyncConfig,
    credentials: Credentials,
    sleep: RecordingSleep,
) -> Callable[..., Any]:
    """Factory for TreeSyncService context managers bound to the fake."""

    def _connect(creds: Credentials | None = None, cfg: TreeSyncConfig | None = None) -> Any:
        return TreeSyncService.connect(
            creds or credentials,
            cfg or config,
            transport=fake_github.transport,
            sleep=sleep,
        )

    return _connect


# ==============================================================================
# Environment Fixtures
# ==============================================================================


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Keep user config, env overrides and the config cache out of tests."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    clear_cache()
    yield
    clear_cache()
    # .env loading writes os.environ directly
    for var in ENV_VARS:
        os.environ.pop(var, None)

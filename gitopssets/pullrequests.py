"""Generator producing parameters from the open pull requests of a repository."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Iterable

import requests

from gitopssets.generators import EmptyGitOpsSetError, Generator
from gitopssets.spec import GitOpsSet, GitOpsSetGenerator, NotFoundError, ObjectKey, Reader
from gitopssets.spec import PullRequestGenerator as PullRequestSpec

_GITHUB_API = "https://api.github.com"


@dataclass
class PullRequestListOptions:
    """Options for listing pull requests."""

    size: int = 20
    page: int = 1
    labels: list[str] = field(default_factory=list)
    open: bool = True


@dataclass
class PullRequest:
    """A pull request as reported by a source-code management service."""

    number: int
    branch: str = ""
    head_sha: str = ""
    clone_url: str = ""
    clone_ssh_url: str = ""
    fork: str = ""
    labels: list[str] = field(default_factory=list)


def _api_base(driver: str, server_url: str) -> str:
    server = server_url.rstrip("/")
    if driver == "github":
        if not server or server == "https://github.com":
            return _GITHUB_API
        return server + "/api/v3"
    if driver == "gitea":
        if not server:
            raise ValueError("a server URL is required for the gitea driver")
        return server + "/api/v1"
    raise ValueError(f"unsupported driver: {driver}")


class ScmClient:
    """Minimal client for listing pull requests on GitHub or Gitea."""

    def __init__(
        self, driver: str, server_url: str = "", token: str = "", session: requests.Session | None = None
    ) -> None:
        self.driver = driver
        self.base_url = _api_base(driver, server_url)
        self.token = token
        self._session = session or requests.Session()

    def list_pull_requests(self, repo: str, options: PullRequestListOptions) -> list[PullRequest]:
        """Return the pull requests of repo ("owner/name") selected by options."""
        params: dict[str, Any] = {"state": "open" if options.open else "closed", "page": options.page}
        if self.driver == "gitea":
            params["limit"] = options.size
        else:
            params["per_page"] = options.size
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        response = self._session.get(f"{self.base_url}/repos/{repo}/pulls", params=params, headers=headers)
        response.raise_for_status()
        return [self._convert(raw) for raw in response.json() or []]

    @staticmethod
    def _convert(raw: dict[str, Any]) -> PullRequest:
        head = raw.get("head") or {}
        head_repo = head.get("repo") or {}
        return PullRequest(
            number=int(raw.get("number", 0)),
            branch=head.get("ref", ""),
            head_sha=head.get("sha", ""),
            clone_url=head_repo.get("clone_url", ""),
            clone_ssh_url=head_repo.get("ssh_url", ""),
            fork=head_repo.get("full_name", ""),
            labels=[label.get("name", "") for label in raw.get("labels") or []],
        )


ScmClientFactory = Callable[[str, str, str], ScmClient]


def new_scm_client(driver: str, server_url: str, token: str) -> ScmClient:
    """Create a client for the driver ("github" or "gitea")."""
    return ScmClient(driver, server_url, token)


def list_options_from_config(config: PullRequestSpec) -> PullRequestListOptions:
    """Build list options for open pull requests with the configured labels."""
    return PullRequestListOptions(size=20, labels=list(config.labels), open=True)


def pr_matches_labels(pr: PullRequest, labels: Iterable[str]) -> bool:
    """Return True if the pull request carries every one of labels."""
    return all(label in pr.labels for label in labels)


def _text(value: Any) -> str:
    return value.decode() if isinstance(value, (bytes, bytearray)) else str(value)


class PullRequestGenerator(Generator):
    """Generates one parameter set per matching open pull request."""

    def __init__(
        self,
        logger: logging.Logger | None = None,
        client: Reader | None = None,
        client_factory: ScmClientFactory = new_scm_client,
    ) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.client = client
        self.client_factory = client_factory

    def generate(
        self, generator: GitOpsSetGenerator | None, gitops_set: GitOpsSet | None
    ) -> list[dict[str, Any]] | None:
        if generator is None:
            self.logger.info("no generator provided")
            raise EmptyGitOpsSetError()
        spec = generator.pull_requests
        if spec is None:
            self.logger.info("pull request configuration is nil")
            return None

        self.logger.info("generating params from PullRequest generator repo=%s", spec.repo)
        auth_token = self._auth_token(spec, gitops_set)

        self.logger.info(
            "querying pull requests repo=%s driver=%s serverURL=%s", spec.repo, spec.driver, spec.server_url
        )
        try:
            scm_client = self.client_factory(spec.driver, spec.server_url, auth_token)
        except Exception as exc:
            raise RuntimeError(f"failed to create client: {exc}") from exc
        try:
            prs = scm_client.list_pull_requests(spec.repo, list_options_from_config(spec))
        except Exception as exc:
            raise RuntimeError(f"failed to list pull requests: {exc}") from exc

        self.logger.info("queried pull requests repo=%s count=%d", spec.repo, len(prs))
        result = []
        for pr in prs:
            if not pr_matches_labels(pr, spec.labels):
                continue
            is_fork = spec.repo != pr.fork
            if not spec.forks and is_fork:
                continue
            result.append({
                "Number": str(pr.number),
                "Branch": pr.branch,
                "HeadSHA": pr.head_sha,
                "CloneURL": pr.clone_url,
                "CloneSSHURL": pr.clone_ssh_url,
                "Fork": is_fork,
            })
        return result

    def interval(self, generator: GitOpsSetGenerator) -> timedelta:
        return generator.pull_requests.interval

    def _auth_token(self, spec: PullRequestSpec, gitops_set: GitOpsSet | None) -> str:
        if spec.secret_ref is None:
            return ""
        namespace = gitops_set.namespace if gitops_set is not None else ""
        key = ObjectKey(spec.secret_ref.name, namespace)
        try:
            secret = self.client.get("Secret", key)
        except NotFoundError as exc:
            raise LookupError(f"failed to load repository generator credentials: {exc}") from exc
        data = secret.get("data") or {}
        if "password" not in data:
            raise LookupError(f"secret {key} does not contain required field 'password'")
        return _text(data["password"])


def generator_factory(logger: logging.Logger | None, client: Reader | None) -> PullRequestGenerator:
    """Create a per-reconciliation pull request generator."""
    return PullRequestGenerator(logger, client)
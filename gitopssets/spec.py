"""Resource specifications for GitOpsSets and an in-memory object reader."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Iterable, Mapping

# Resource names that are not simply the lower-cased kind followed by "s".
_RESOURCES = {
    "GitRepository": "gitrepositories.source.toolkit.fluxcd.io",
    "OCIRepository": "ocirepositories.source.toolkit.fluxcd.io",
    "ImagePolicy": "imagepolicies.image.toolkit.fluxcd.io",
    "GitopsCluster": "gitopsclusters.gitops.weave.works",
    "GitOpsSet": "gitopssets.templates.weave.works",
}


@dataclass(frozen=True)
class ObjectKey:
    """Namespaced name of a cluster object."""

    name: str
    namespace: str = ""

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"


class NotFoundError(LookupError):
    """Raised when a requested object does not exist."""

    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        resource = _RESOURCES.get(kind, kind.lower() + "s")
        super().__init__(f'{resource} "{name}" not found')


@dataclass
class LabelSelector:
    """Selects objects by their labels; an empty selector matches everything."""

    match_labels: dict[str, str] = field(default_factory=dict)
    match_expressions: list[dict[str, Any]] = field(default_factory=list)

    def matches(self, labels: Mapping[str, str] | None) -> bool:
        labels = labels or {}
        for key, value in self.match_labels.items():
            if labels.get(key) != value:
                return False
        for expression in self.match_expressions:
            key = expression["key"]
            operator = expression["operator"]
            values = expression.get("values") or []
            if operator == "In":
                ok = key in labels and labels[key] in values
            elif operator == "NotIn":
                ok = key not in labels or labels[key] not in values
            elif operator == "Exists":
                ok = key in labels
            elif operator == "DoesNotExist":
                ok = key not in labels
            else:
                raise ValueError(f'"{operator}" is not a valid label selector operator')
            if not ok:
                return False
        return True


class Reader:
    """Read-only access to a set of cluster objects held as dictionaries.

    Each object has a "kind" and a "metadata" mapping with "name",
    "namespace" and optionally "labels" and "annotations".
    """

    def __init__(self, objects: Iterable[Mapping[str, Any]] = ()) -> None:
        self._objects = [copy.deepcopy(dict(obj)) for obj in objects]

    @staticmethod
    def _key(obj: Mapping[str, Any]) -> tuple[str, str]:
        meta = obj.get("metadata", {})
        return meta.get("namespace", ""), meta.get("name", "")

    def get(self, kind: str, key: ObjectKey) -> dict[str, Any]:
        for obj in self._objects:
            if obj.get("kind") == kind and self._key(obj) == (key.namespace, key.name):
                return copy.deepcopy(obj)
        raise NotFoundError(kind, key.name)

    def list(self, kind: str, selector: LabelSelector | None = None) -> list[dict[str, Any]]:
        found = [
            copy.deepcopy(obj)
            for obj in self._objects
            if obj.get("kind") == kind
            and (selector is None or selector.matches(obj.get("metadata", {}).get("labels")))
        ]
        return sorted(found, key=self._key)


def _generator(name: str) -> Any:
    return field(default=None, metadata={"generator": name})


@dataclass
class LocalObjectReference:
    name: str


@dataclass
class HeadersReference:
    name: str
    kind: str


@dataclass
class RepositoryGeneratorFileItem:
    path: str


@dataclass
class RepositoryGeneratorDirectoryItem:
    path: str
    exclude: bool = False


@dataclass
class ListGenerator:
    """Raw JSON elements (strings, bytes or already-decoded mappings)."""

    elements: list[Any] = field(default_factory=list)


@dataclass
class ConfigGenerator:
    kind: str = ""
    name: str = ""


@dataclass
class ClusterGenerator:
    selector: LabelSelector = field(default_factory=LabelSelector)


@dataclass
class GitRepositoryGenerator:
    repository_ref: str = ""
    files: list[RepositoryGeneratorFileItem] | None = None
    directories: list[RepositoryGeneratorDirectoryItem] | None = None


@dataclass
class OCIRepositoryGenerator:
    repository_ref: str = ""
    files: list[RepositoryGeneratorFileItem] | None = None
    directories: list[RepositoryGeneratorDirectoryItem] | None = None


@dataclass
class ImagePolicyGenerator:
    policy_ref: str = ""


@dataclass
class PullRequestGenerator:
    driver: str = ""
    server_url: str = ""
    repo: str = ""
    interval: timedelta = timedelta(0)
    secret_ref: LocalObjectReference | None = None
    labels: list[str] = field(default_factory=list)
    forks: bool = False


@dataclass
class APIClientGenerator:
    endpoint: str = ""
    method: str = "GET"
    json_path: str = ""
    headers_ref: HeadersReference | None = None
    body: bytes | None = None
    single_element: bool = False
    interval: timedelta = timedelta(0)
    secret_ref: LocalObjectReference | None = None


@dataclass
class GitOpsSetNestedGenerator:
    name: str = ""
    list: ListGenerator | None = _generator("List")
    pull_requests: PullRequestGenerator | None = _generator("PullRequests")
    git_repository: GitRepositoryGenerator | None = _generator("GitRepository")
    oci_repository: OCIRepositoryGenerator | None = _generator("OCIRepository")
    cluster: ClusterGenerator | None = _generator("Cluster")
    api_client: APIClientGenerator | None = _generator("APIClient")
    image_policy: ImagePolicyGenerator | None = _generator("ImagePolicy")
    config: ConfigGenerator | None = _generator("Config")


@dataclass
class MatrixGenerator:
    generators: list[GitOpsSetNestedGenerator] = field(default_factory=list)
    single_element: bool = False


@dataclass
class GitOpsSetGenerator:
    list: ListGenerator | None = _generator("List")
    pull_requests: PullRequestGenerator | None = _generator("PullRequests")
    git_repository: GitRepositoryGenerator | None = _generator("GitRepository")
    oci_repository: OCIRepositoryGenerator | None = _generator("OCIRepository")
    matrix: MatrixGenerator | None = _generator("Matrix")
    cluster: ClusterGenerator | None = _generator("Cluster")
    api_client: APIClientGenerator | None = _generator("APIClient")
    image_policy: ImagePolicyGenerator | None = _generator("ImagePolicy")
    config: ConfigGenerator | None = _generator("Config")


@dataclass
class GitOpsSet:
    name: str = ""
    namespace: str = ""
    generators: list[GitOpsSetGenerator] = field(default_factory=list)
"""Generator producing image details from an ImagePolicy's status."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any
from urllib.parse import urlsplit

from gitopssets.generators import NO_REQUEUE_INTERVAL, EmptyGitOpsSetError, Generator, artifact_error
from gitopssets.spec import GitOpsSet, GitOpsSetGenerator, NotFoundError, ObjectKey, Reader

DEFAULT_REGISTRY = "index.docker.io"
DEFAULT_TAG = "latest"
_REGISTRY_ALIAS = "docker.io"
_TAG_CHARS = "abcdefghijklmnopqrstuvwxyz0123456789_-.ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_REPOSITORY_CHARS = "abcdefghijklmnopqrstuvwxyz0123456789_-./"


def _check_element(name: str, element: str, allowed: str, minimum: int, maximum: int) -> None:
    if not minimum <= len(element) <= maximum:
        raise ValueError(f"{name} must be between {minimum} and {maximum} characters in length: {element}")
    if any(char not in allowed for char in element):
        raise ValueError(f"{name} can only contain the characters `{allowed}`: {element}")


def _check_registry(name: str) -> None:
    try:
        netloc = urlsplit("//" + name).netloc
    except ValueError:
        netloc = None
    if netloc != name:
        raise ValueError(f"registries must be valid RFC 3986 URI authorities: {name}")


@dataclass(frozen=True)
class ImageTag:
    """A parsed image reference with a tag."""

    registry: str
    repository: str
    tag: str

    @property
    def repository_name(self) -> str:
        """The full repository name including the registry."""
        repository = self.repository
        if "/" not in repository and self.registry == DEFAULT_REGISTRY:
            repository = "library/" + repository
        return f"{self.registry}/{repository}"

    def __str__(self) -> str:
        return f"{self.repository_name}:{self.tag}"


def parse_tag(reference: str) -> ImageTag:
    """Parse an image reference such as "ghcr.io/org/app:v1" into an ImageTag."""
    base, tag = reference, ""
    parts = reference.split(":")
    if len(parts) > 1 and "/" not in parts[-1]:
        base, tag = ":".join(parts[:-1]), parts[-1]
    if tag:
        _check_element("tag", tag, _TAG_CHARS, 1, 128)
    else:
        tag = DEFAULT_TAG

    if not base:
        raise ValueError("a repository name must be specified")
    registry, repository = "", base
    head, sep, rest = base.partition("/")
    if sep and ("." in head or ":" in head):
        registry, repository = head, rest
    _check_element("repository", repository, _REPOSITORY_CHARS, 2, 255)

    if not registry or registry == _REGISTRY_ALIAS:
        registry = DEFAULT_REGISTRY
    _check_registry(registry)
    return ImageTag(registry, repository, tag)


class ImagePolicyGenerator(Generator):
    """Generates the latest and previous images selected by an ImagePolicy."""

    def __init__(self, logger: logging.Logger | None = None, client: Reader | None = None) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.client = client

    def generate(
        self, generator: GitOpsSetGenerator | None, gitops_set: GitOpsSet | None
    ) -> list[dict[str, Any]] | None:
        if generator is None:
            raise EmptyGitOpsSetError()
        ref = generator.image_policy
        if ref is None:
            return None
        self.logger.info("generating params from ImagePolicy generator imagePolicy=%s", ref.policy_ref)

        namespace = gitops_set.namespace if gitops_set is not None else ""
        try:
            policy = self.client.get("ImagePolicy", ObjectKey(ref.policy_ref, namespace))
        except NotFoundError as exc:
            raise LookupError(f"could not load ImagePolicy: {exc}") from exc

        status = policy.get("status") or {}
        latest_image = status.get("latestImage") or ""
        if not latest_image:
            self.logger.info("image policy has not calculated the latest image")
            meta = policy.get("metadata") or {}
            raise artifact_error("ImagePolicy", ObjectKey(meta.get("name", ""), meta.get("namespace", "")))

        latest = parse_tag(latest_image)
        previous_image = status.get("observedPreviousImage") or ""
        self.logger.info(
            "image policy latestImage=%s latestTag=%s previousImage=%s", latest_image, latest.tag, previous_image
        )
        # Empty strings save templates from checking whether the fields exist.
        previous_tag = parse_tag(previous_image).tag if previous_image else ""

        return [{
            "latestImage": latest_image,
            "image": latest.repository_name,
            "latestTag": latest.tag,
            "previousImage": previous_image,
            "previousTag": previous_tag,
        }]

    def interval(self, generator: GitOpsSetGenerator) -> timedelta:
        return NO_REQUEUE_INTERVAL


def generator_factory(logger: logging.Logger | None, client: Reader | None) -> ImagePolicyGenerator:
    """Create a per-reconciliation image policy generator."""
    return ImagePolicyGenerator(logger, client)
"""The generator interface, shared errors and generator selection."""

from __future__ import annotations

import abc
import dataclasses
from datetime import timedelta
from typing import Any, Mapping

from gitopssets.spec import GitOpsSet, GitOpsSetGenerator, ObjectKey

NO_REQUEUE_INTERVAL = timedelta(0)
DEFAULT_REQUEUE_AFTER = timedelta(minutes=3)


class EmptyGitOpsSetError(ValueError):
    """Raised when no generator definition is provided."""

    def __init__(self) -> None:
        super().__init__("GitOpsSet is empty")


class NoArtifactError(Exception):
    """A repository's artifact is not available."""

    def __init__(self, kind: str, name: ObjectKey) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"no artifact for {kind} {name}")


def artifact_error(kind: str, name: ObjectKey) -> NoArtifactError:
    """Create a NoArtifactError."""
    return NoArtifactError(kind, name)


class GeneratorNotEnabledError(Exception):
    """A GitOpsSet uses a generator that is not enabled."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"generator {name} not enabled")

    def __eq__(self, other: object) -> bool:
        return isinstance(other, GeneratorNotEnabledError) and other.name == self.name

    def __hash__(self) -> int:
        return hash(self.name)


class Generator(abc.ABC):
    """Produces template parameters from a generator definition."""

    @abc.abstractmethod
    def generate(
        self, generator: GitOpsSetGenerator | None, gitops_set: GitOpsSet | None
    ) -> list[dict[str, Any]] | None:
        """Return the parameters generated for the definition."""

    @abc.abstractmethod
    def interval(self, generator: GitOpsSetGenerator) -> timedelta:
        """Return how long to wait before regenerating."""


def find_relevant_generators(set_generator: Any, enabled_generators: Mapping[str, Any]) -> list[Any]:
    """Return the enabled generators for every definition set on set_generator."""
    found = []
    for f in dataclasses.fields(set_generator):
        name = f.metadata.get("generator")
        if name is None or getattr(set_generator, f.name) is None:
            continue
        if name not in enabled_generators:
            raise GeneratorNotEnabledError(name)
        found.append(enabled_generators[name])
    return found
"""Generator producing a single parameter set from a ConfigMap or Secret."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Mapping

from gitopssets.generators import NO_REQUEUE_INTERVAL, EmptyGitOpsSetError, Generator
from gitopssets.spec import GitOpsSet, GitOpsSetGenerator, ObjectKey, Reader


def _to_text_map(data: Mapping[str, Any] | None) -> dict[str, Any]:
    return {
        key: value.decode() if isinstance(value, (bytes, bytearray)) else value
        for key, value in (data or {}).items()
    }


class ConfigGenerator(Generator):
    """Generates parameters from the data of a referenced ConfigMap or Secret."""

    def __init__(self, logger: logging.Logger | None = None, client: Reader | None = None) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.client = client

    def generate(
        self, generator: GitOpsSetGenerator | None, gitops_set: GitOpsSet | None
    ) -> list[dict[str, Any]] | None:
        if generator is None:
            raise EmptyGitOpsSetError()
        config = generator.config
        if config is None:
            return None
        self.logger.info("generating params from Config generator")
        if config.kind not in ("ConfigMap", "Secret"):
            raise ValueError(f'unknown Config Kind "{config.kind}" "{config.name}"')
        namespace = gitops_set.namespace if gitops_set else ""
        obj = self.client.get(config.kind, ObjectKey(config.name, namespace))
        return [_to_text_map(obj.get("data"))]

    def interval(self, generator: GitOpsSetGenerator) -> timedelta:
        """Config generation is driven by watching the referenced object."""
        if generator is not None and generator.config is not None:
            self.logger.debug(
                "config generator for %s %s does not requeue",
                generator.config.kind,
                generator.config.name,
            )
        return NO_REQUEUE_INTERVAL


def generator_factory(logger: logging.Logger | None, client: Reader | None) -> ConfigGenerator:
    """Create a per-reconciliation config generator."""
    return ConfigGenerator(logger, client)
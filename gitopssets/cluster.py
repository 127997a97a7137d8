"""Generator producing one parameter set per matching GitopsCluster."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from gitopssets.generators import NO_REQUEUE_INTERVAL, EmptyGitOpsSetError, Generator
from gitopssets.spec import GitOpsSet, GitOpsSetGenerator, Reader


class ClusterGenerator(Generator):
    """Generates parameters from GitopsCluster objects selected by labels."""

    def __init__(self, logger: logging.Logger | None = None, client: Reader | None = None) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.client = client

    def generate(
        self, generator: GitOpsSetGenerator | None, gitops_set: GitOpsSet | None
    ) -> list[dict[str, Any]] | None:
        if generator is None:
            raise EmptyGitOpsSetError()
        if generator.cluster is None:
            return None
        self.logger.info("generating params from Cluster generator")
        clusters = self.client.list("GitopsCluster", generator.cluster.selector)
        result = []
        for cluster in clusters:
            meta = cluster.get("metadata", {})
            result.append({
                "ClusterName": meta.get("name", ""),
                "ClusterNamespace": meta.get("namespace", ""),
                "ClusterLabels": dict(meta.get("labels") or {}),
                "ClusterAnnotations": dict(meta.get("annotations") or {}),
            })
        return result

    def interval(self, generator: GitOpsSetGenerator) -> timedelta:
        """Cluster generation is driven by watching GitopsCluster objects."""
        if generator is not None and generator.cluster is not None:
            self.logger.debug(
                "cluster generator with selector %s does not requeue",
                generator.cluster.selector,
            )
        return NO_REQUEUE_INTERVAL


def generator_factory(logger: logging.Logger | None, client: Reader | None) -> ClusterGenerator:
    """Create a per-reconciliation cluster generator."""
    return ClusterGenerator(logger, client)
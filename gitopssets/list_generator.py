"""Generator producing parameters from a literal list of JSON objects."""

from __future__ import annotations

import copy
import json
import logging
from datetime import timedelta
from typing import Any

from gitopssets.generators import NO_REQUEUE_INTERVAL, EmptyGitOpsSetError, Generator
from gitopssets.spec import GitOpsSet, GitOpsSetGenerator, Reader


class ListGenerator(Generator):
    """Generates one parameter set per list element."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or logging.getLogger(__name__)

    def generate(
        self, generator: GitOpsSetGenerator | None, gitops_set: GitOpsSet | None = None
    ) -> list[dict[str, Any]] | None:
        if generator is None:
            raise EmptyGitOpsSetError()
        if generator.list is None:
            return None
        self.logger.info("generating params from List generator")
        result = []
        for element in generator.list.elements:
            if isinstance(element, dict):
                parsed: Any = copy.deepcopy(element)
            else:
                try:
                    parsed = json.loads(element)
                except ValueError as exc:
                    raise ValueError(f"error unmarshaling list element: {exc}") from exc
            if not isinstance(parsed, dict):
                raise ValueError("error unmarshaling list element: element is not an object")
            result.append(parsed)
        return result

    def interval(self, generator: GitOpsSetGenerator) -> timedelta:
        """Lists change only with the GitOpsSet itself, so they never poll."""
        if generator is not None and generator.list is not None:
            self.logger.debug(
                "list generator with %d elements does not requeue", len(generator.list.elements)
            )
        return NO_REQUEUE_INTERVAL


def generator_factory(logger: logging.Logger | None, client: Reader | None) -> ListGenerator:
    """Create a per-reconciliation list generator."""
    return ListGenerator(logger)
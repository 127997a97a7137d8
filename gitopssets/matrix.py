"""Generator combining the results of nested generators into a matrix."""

from __future__ import annotations

import copy
import dataclasses
import itertools
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Mapping

from gitopssets.generators import (
    NO_REQUEUE_INTERVAL,
    EmptyGitOpsSetError,
    Generator,
    GeneratorNotEnabledError,
    find_relevant_generators,
)
from gitopssets.spec import GitOpsSet, GitOpsSetGenerator, GitOpsSetNestedGenerator, Reader

GeneratorFactory = Callable[[Any, Any], Generator]


@dataclass
class GeneratedElements:
    """The elements produced by one nested generator, with its optional name."""

    name: str = ""
    elements: list[dict[str, Any]] = field(default_factory=list)


def make_gitopsset_generator(nested: GitOpsSetNestedGenerator) -> GitOpsSetGenerator:
    """Convert a nested generator definition into a top-level one (dropping its name)."""
    values = {
        f.name: copy.deepcopy(getattr(nested, f.name))
        for f in dataclasses.fields(nested)
        if f.name != "name"
    }
    return GitOpsSetGenerator(**values)


def _merge(target: dict[str, Any], source: Mapping[str, Any]) -> None:
    for key, value in source.items():
        existing = target.get(key)
        if isinstance(existing, dict) and isinstance(value, Mapping):
            _merge(existing, value)
        else:
            target[key] = copy.deepcopy(value)


def cartesian(generated: list[GeneratedElements]) -> list[dict[str, Any]]:
    """Return the cartesian product of the generated elements, without duplicates."""
    if not generated:
        return []
    columns = [
        [{g.name: element} for element in g.elements] if g.name else g.elements
        for g in generated
    ]
    results: list[dict[str, Any]] = []
    for combination in itertools.product(*columns):
        merged: dict[str, Any] = {}
        for element in combination:
            _merge(merged, element)
        if merged not in results:
            results.append(merged)
    return results


def single_element(generated: list[GeneratedElements]) -> list[dict[str, Any]]:
    """Flatten the generated elements into a single element."""
    if not generated:
        return []
    result: dict[str, Any] = {g.name: [] for g in generated if g.name}
    unnamed: list[dict[str, Any]] = []
    for g in generated:
        for element in g.elements:
            if g.name:
                result[g.name].append(element)
            else:
                unnamed.append(element)
    if unnamed:
        result["Matrix"] = unnamed
    return [result]


class MatrixGenerator(Generator):
    """Combines the output of several nested generators."""

    def __init__(
        self,
        logger: logging.Logger | None = None,
        client: Reader | None = None,
        generators_map: Mapping[str, GeneratorFactory] | None = None,
    ) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.client = client
        self.generators_map = dict(generators_map or {})

    def _instantiate(self) -> dict[str, Generator]:
        return {name: factory(self.logger, self.client) for name, factory in self.generators_map.items()}

    def generate(
        self, generator: GitOpsSetGenerator | None, gitops_set: GitOpsSet | None
    ) -> list[dict[str, Any]] | None:
        if generator is None:
            raise EmptyGitOpsSetError()
        if generator.matrix is None:
            return None
        all_generators = self._instantiate()
        generated: list[GeneratedElements] = []
        for nested in generator.matrix.generators:
            for relevant in find_relevant_generators(nested, all_generators):
                elements = relevant.generate(make_gitopsset_generator(nested), gitops_set)
                if elements:
                    generated.append(GeneratedElements(nested.name, elements))
        if generator.matrix.single_element:
            return single_element(generated)
        try:
            return cartesian(generated)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"failed to create cartesian product of generators: {exc}") from exc

    def interval(self, generator: GitOpsSetGenerator) -> timedelta:
        all_generators = self._instantiate()
        intervals: list[timedelta] = []
        for nested in generator.matrix.generators:
            try:
                relevant = find_relevant_generators(nested, all_generators)
            except GeneratorNotEnabledError as exc:
                self.logger.error("failed to find relevant generators, defaulting to no requeue: %s", exc)
                return NO_REQUEUE_INTERVAL
            for rg in relevant:
                duration = rg.interval(make_gitopsset_generator(nested))
                if duration > NO_REQUEUE_INTERVAL:
                    intervals.append(duration)
        return min(intervals, default=NO_REQUEUE_INTERVAL)


def generator_factory(
    generators_map: Mapping[str, GeneratorFactory],
) -> Callable[[logging.Logger | None, Reader | None], MatrixGenerator]:
    """Return a factory creating per-reconciliation matrix generators."""

    def factory(logger: logging.Logger | None, client: Reader | None) -> MatrixGenerator:
        return MatrixGenerator(logger, client, generators_map)

    return factory
"""Generator producing parameters from the artifact of an OCIRepository."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Callable

from gitopssets.generators import NO_REQUEUE_INTERVAL, EmptyGitOpsSetError, Generator, artifact_error
from gitopssets.parser import ArchiveFetcher, RepositoryParser
from gitopssets.spec import GitOpsSet, GitOpsSetGenerator, NotFoundError, ObjectKey, Reader
from gitopssets.spec import OCIRepositoryGenerator as OCIRepositorySpec

KIND = "OCIRepository"


class OCIRepositoryGenerator(Generator):
    """Generates parameters from files or directories of an OCIRepository artifact."""

    def __init__(
        self,
        logger: logging.Logger | None = None,
        client: Reader | None = None,
        fetcher: ArchiveFetcher | None = None,
    ) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.client = client
        self.fetcher = fetcher

    def generate(
        self, generator: GitOpsSetGenerator | None, gitops_set: GitOpsSet | None
    ) -> list[dict[str, Any]] | None:
        if generator is None:
            raise EmptyGitOpsSetError()
        spec = generator.oci_repository
        if spec is None:
            return None
        self.logger.info("generating params from OCIRepository generator repo=%s", spec.repository_ref)

        if spec.files is not None:
            url, digest = self._artifact(spec, gitops_set)
            return self._parser().generate_from_files(url, digest, spec.files)
        if spec.directories is not None:
            url, digest = self._artifact(spec, gitops_set)
            return self._parser().generate_from_directories(url, digest, spec.directories)
        raise EmptyGitOpsSetError()

    def interval(self, generator: GitOpsSetGenerator) -> timedelta:
        return NO_REQUEUE_INTERVAL

    def _parser(self) -> RepositoryParser:
        return RepositoryParser(self.fetcher, self.logger)

    def _artifact(self, spec: OCIRepositorySpec, gitops_set: GitOpsSet | None) -> tuple[str, str]:
        namespace = gitops_set.namespace if gitops_set is not None else ""
        key = ObjectKey(spec.repository_ref, namespace)
        try:
            repo = self.client.get(KIND, key)
        except NotFoundError as exc:
            raise LookupError(f"could not load OCIRepository: {exc}") from exc

        artifact = (repo.get("status") or {}).get("artifact")
        if not artifact:
            self.logger.info("OCIRepository does not have an artifact repository=%s", key)
            raise artifact_error(KIND, key)

        url = artifact.get("url", "")
        digest = artifact.get("digest", "")
        self.logger.info(
            "fetching archive URL repoURL=%s artifactURL=%s digest=%s revision=%s",
            (repo.get("spec") or {}).get("url", ""), url, digest, artifact.get("revision", ""),
        )
        return url, digest


def generator_factory(
    fetcher: ArchiveFetcher | None,
) -> Callable[[logging.Logger | None, Reader | None], OCIRepositoryGenerator]:
    """Return a factory creating per-reconciliation OCIRepository generators."""

    def factory(logger: logging.Logger | None, client: Reader | None) -> OCIRepositoryGenerator:
        return OCIRepositoryGenerator(logger, client, fetcher)

    return factory
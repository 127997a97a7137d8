"""Fetching repository archives and generating parameters from their contents."""

from __future__ import annotations

import abc
import glob
import hashlib
import io
import logging
import os
import posixpath
import tarfile
import tempfile
from collections import deque
from typing import Any, Iterable

import requests
import yaml

from gitopssets.spec import RepositoryGeneratorDirectoryItem, RepositoryGeneratorFileItem

_MAX_SYMLINKS = 255


class ArchiveFetcher(abc.ABC):
    """Downloads an archive, verifies it and unpacks it into a directory."""

    @abc.abstractmethod
    def fetch(self, archive_url: str, checksum: str, directory: str) -> None:
        """Fetch archive_url, check it against checksum and unpack into directory."""


class HttpArchiveFetcher(ArchiveFetcher):
    """Fetches tar archives over HTTP with retries on transient failures."""

    def __init__(self, retries: int = 2, timeout: float = 30.0, session: requests.Session | None = None) -> None:
        self.retries = retries
        self.timeout = timeout
        self._session = session or requests.Session()

    def _download(self, archive_url: str) -> bytes:
        last_error: Exception | None = None
        for _ in range(self.retries + 1):
            try:
                response = self._session.get(archive_url, timeout=self.timeout)
            except requests.RequestException as exc:
                last_error = exc
                continue
            if response.status_code >= 500:
                last_error = OSError(f"failed to download archive, status: {response.status_code}")
                continue
            if response.status_code != 200:
                raise OSError(f"failed to download archive, status: {response.status_code}")
            return response.content
        assert last_error is not None
        raise last_error

    @staticmethod
    def _verify(data: bytes, checksum: str) -> None:
        algorithm, _, digest = checksum.rpartition(":")
        hasher = hashlib.new(algorithm or "sha256")
        hasher.update(data)
        actual = hasher.hexdigest()
        if actual.lower() != digest.lower():
            raise ValueError(f"failed to verify archive: computed checksum '{actual}' doesn't match '{digest}'")

    @staticmethod
    def _extract(data: bytes, directory: str) -> None:
        root = os.path.realpath(directory)
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:*") as archive:
            members = []
            for member in archive.getmembers():
                if not (member.isfile() or member.isdir()):
                    continue
                target = os.path.realpath(os.path.join(root, member.name))
                if target != root and not target.startswith(root + os.sep):
                    raise ValueError(f"archive entry {member.name!r} escapes the target directory")
                members.append(member)
            if hasattr(tarfile, "data_filter"):
                archive.extractall(root, members=members, filter="data")
            else:
                archive.extractall(root, members=members)

    def fetch(self, archive_url: str, checksum: str, directory: str) -> None:
        data = self._download(archive_url)
        self._verify(data, checksum)
        self._extract(data, directory)


def secure_join(root: str, unsafe_path: str) -> str:
    """Join unsafe_path onto root, resolving ".." and symlinks without leaving root."""
    parts = deque(unsafe_path.replace(os.sep, "/").split("/"))
    current = ""
    links = 0
    while parts:
        part = parts.popleft()
        if part in ("", "."):
            continue
        if part == "..":
            current = posixpath.dirname(current)
            continue
        candidate = posixpath.join(current, part) if current else part
        full = os.path.join(root, candidate)
        if os.path.islink(full):
            links += 1
            if links > _MAX_SYMLINKS:
                raise OSError(f"too many symlinks resolving {unsafe_path!r}")
            target = os.readlink(full).replace(os.sep, "/")
            if target.startswith("/"):
                current = ""
            parts.extendleft(reversed(target.split("/")))
            continue
        current = candidate
    return os.path.join(root, *current.split("/")) if current else root


class RepositoryParser:
    """Fetches repository archives and parses resources from them."""

    def __init__(self, fetcher: ArchiveFetcher, logger: logging.Logger | None = None) -> None:
        self.fetcher = fetcher
        self.logger = logger or logging.getLogger(__name__)

    def _fetch(self, archive_url: str, checksum: str, directory: str) -> None:
        try:
            self.fetcher.fetch(archive_url, checksum, directory)
        except Exception as exc:
            raise RuntimeError(f"failed to get archive URL {archive_url}: {exc}") from exc

    def generate_from_files(
        self, archive_url: str, checksum: str, files: Iterable[RepositoryGeneratorFileItem]
    ) -> list[dict[str, Any]]:
        """Parse each listed YAML or JSON file of the archive into a mapping."""
        with tempfile.TemporaryDirectory(prefix="parsing", ignore_cleanup_errors=True) as temp_dir:
            self._fetch(archive_url, checksum, temp_dir)
            result = []
            for item in files:
                full_path = secure_join(temp_dir, item.path)
                try:
                    with open(full_path, "rb") as handle:
                        content = handle.read()
                except OSError as exc:
                    raise OSError(f'failed to read from archive file "{item.path}": {exc}') from exc
                try:
                    parsed = yaml.safe_load(content)
                except yaml.YAMLError as exc:
                    raise ValueError(f'failed to parse archive file "{item.path}": {exc}') from exc
                if parsed is None:
                    parsed = {}
                if not isinstance(parsed, dict):
                    raise ValueError(f'failed to parse archive file "{item.path}": not a mapping')
                result.append(parsed)
            return result

    def generate_from_directories(
        self, archive_url: str, checksum: str, directories: Iterable[RepositoryGeneratorDirectoryItem]
    ) -> list[dict[str, Any]]:
        """List the archive directories matching the patterns, minus exclusions."""
        with tempfile.TemporaryDirectory(prefix="parsing", ignore_cleanup_errors=True) as temp_dir:
            self._fetch(archive_url, checksum, temp_dir)
            exclusions = set()
            paths = []
            for item in directories:
                if item.exclude:
                    exclusions.add(posixpath.normpath(item.path))
                    continue
                full_path = secure_join(temp_dir, item.path)
                relative = os.path.relpath(full_path, temp_dir)
                pattern = os.path.join(glob.escape(temp_dir), relative)
                for match in sorted(glob.glob(pattern)):
                    paths.append(os.path.relpath(match, temp_dir).replace(os.sep, "/"))
            return [
                {"Directory": "./" + path, "Base": posixpath.basename(path)}
                for path in paths
                if path not in exclusions
            ]
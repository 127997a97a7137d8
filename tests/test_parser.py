import hashlib
import io
import os
import tarfile

import pytest
import responses

from gitopssets.parser import HttpArchiveFetcher, RepositoryParser, secure_join
from gitopssets.spec import RepositoryGeneratorDirectoryItem as Dir
from gitopssets.spec import RepositoryGeneratorFileItem as File

BASE = "http://archives.example.com"

YAML_FILES = {
    "files/dev.yaml": "environment: dev\ninstances: 2\n",
    "files/production.yaml": "environment: production\ninstances: 10\n",
    "files/staging.yaml": "environment: staging\ninstances: 5\n",
}
JSON_FILES = {
    "files/dev.json": '{"environment": "dev", "instances": 1}',
    "files/production.json": '{"environment": "production", "instances": 10}',
    "files/staging.json": '{"environment": "staging", "instances": 5}',
}
DIR_FILES = {
    "applications/backend/kustomization.yaml": "a: 1\n",
    "applications/frontend/kustomization.yaml": "a: 1\n",
}


@pytest.fixture
def mock():
    with responses.RequestsMock(assert_all_requests_are_fired=False) as requests_mock:
        yield requests_mock


def _archive(files):
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name, text in files.items():
            data = text.encode()
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    data = buf.getvalue()
    return data, "sha256:" + hashlib.sha256(data).hexdigest()


def _serve(mock, name, files):
    data, checksum = _archive(files)
    mock.add(responses.GET, f"{BASE}/{name}", body=data)
    return f"{BASE}/{name}", checksum


def _parser():
    return RepositoryParser(HttpArchiveFetcher(retries=2))


@pytest.mark.parametrize(
    "files,items,want",
    [
        (
            YAML_FILES,
            ["files/dev.yaml", "files/production.yaml", "files/staging.yaml"],
            [
                {"environment": "dev", "instances": 2.0},
                {"environment": "production", "instances": 10.0},
                {"environment": "staging", "instances": 5.0},
            ],
        ),
        (
            JSON_FILES,
            ["files/dev.json", "files/production.json", "files/staging.json"],
            [
                {"environment": "dev", "instances": 1.0},
                {"environment": "production", "instances": 10.0},
                {"environment": "staging", "instances": 5.0},
            ],
        ),
    ],
)
def test_generate_from_files(mock, files, items, want):
    url, checksum = _serve(mock, "files.tar.gz", files)
    parsed = _parser().generate_from_files(url, checksum, [File(p) for p in items])
    assert sorted(parsed, key=lambda m: m["environment"]) == want


def test_generate_from_files_bad_yaml(mock):
    url, checksum = _serve(mock, "bad_files.tar.gz", {"files/dev.yaml": "environment: dev\ninstances: [2\n"})
    with pytest.raises(ValueError, match='failed to parse archive file "files/dev.yaml"'):
        _parser().generate_from_files(url, checksum, [File("files/dev.yaml")])


def test_generate_from_files_missing_file(mock):
    url, checksum = _serve(mock, "files.tar.gz", YAML_FILES)
    with pytest.raises(OSError, match='failed to read from archive file "files/test.yaml"'):
        _parser().generate_from_files(url, checksum, [File("files/test.yaml")])


def test_generate_from_files_missing_url(mock):
    _, checksum = _archive(YAML_FILES)
    mock.add(responses.GET, f"{BASE}/missing.tar.gz", status=404)
    with pytest.raises(RuntimeError, match="failed to get archive URL"):
        _parser().generate_from_files(f"{BASE}/missing.tar.gz", checksum, [File("files/test.yaml")])


def test_checksum_mismatch(mock):
    url, _ = _serve(mock, "files.tar.gz", YAML_FILES)
    with pytest.raises(RuntimeError, match="failed to get archive URL"):
        _parser().generate_from_files(url, "sha256:" + "0" * 64, [File("files/dev.yaml")])


@pytest.mark.parametrize(
    "items,want",
    [
        (
            [Dir("applications/*")],
            [
                {"Directory": "./applications/backend", "Base": "backend"},
                {"Directory": "./applications/frontend", "Base": "frontend"},
            ],
        ),
        ([Dir("*")], [{"Directory": "./applications", "Base": "applications"}]),
        ([Dir("/applications")], [{"Directory": "./applications", "Base": "applications"}]),
        (
            [Dir("applications/*"), Dir("applications/backend", exclude=True)],
            [{"Directory": "./applications/frontend", "Base": "frontend"}],
        ),
        (
            [Dir("applications/*"), Dir("./applications/backend", exclude=True)],
            [{"Directory": "./applications/frontend", "Base": "frontend"}],
        ),
        (
            [Dir("applications/*"), Dir("./applications/backend/", exclude=True)],
            [{"Directory": "./applications/frontend", "Base": "frontend"}],
        ),
    ],
)
def test_generate_from_directories(mock, items, want):
    url, checksum = _serve(mock, "directories.tar.gz", DIR_FILES)
    parsed = _parser().generate_from_directories(url, checksum, items)
    assert sorted(parsed, key=lambda m: m["Directory"]) == want


def test_generate_from_directories_missing_dir(mock):
    url, checksum = _serve(mock, "directories.tar.gz", DIR_FILES)
    assert _parser().generate_from_directories(url, checksum, [Dir("files")]) == []


def test_generate_from_directories_missing_url(mock):
    _, checksum = _archive(YAML_FILES)
    mock.add(responses.GET, f"{BASE}/missing.tar.gz", status=404)
    with pytest.raises(RuntimeError, match="failed to get archive URL"):
        _parser().generate_from_directories(f"{BASE}/missing.tar.gz", checksum, [Dir("files/test.yaml")])


def test_secure_join_stays_in_root(tmp_path):
    root = str(tmp_path)
    assert secure_join(root, "../../etc/passwd") == os.path.join(root, "etc", "passwd")
    assert secure_join(root, "/a/./b/../c") == os.path.join(root, "a", "c")
    assert secure_join(root, "") == root
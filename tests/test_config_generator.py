import pytest

from gitopssets.config_generator import ConfigGenerator, generator_factory
from gitopssets.generators import NO_REQUEUE_INTERVAL
from gitopssets.spec import GitOpsSet, GitOpsSetGenerator, NotFoundError, Reader
from gitopssets.spec import ConfigGenerator as ConfigSpec

GITOPS_SET = GitOpsSet(name="demo-set", namespace="testing")


def test_generate_with_no_config():
    assert generator_factory(None, None).generate(GitOpsSetGenerator(), None) is None


def test_interval():
    assert ConfigGenerator().interval(GitOpsSetGenerator(config=ConfigSpec())) == NO_REQUEUE_INTERVAL


@pytest.mark.parametrize(
    "kind,name,exc,message",
    [
        ("ConfigMap", "test-config-map", NotFoundError, 'configmaps "test-config-map" not found'),
        ("Secret", "test-secret", NotFoundError, 'secrets "test-secret" not found'),
        ("Database", "test-database", ValueError, 'unknown Config Kind "Database" "test-database"'),
    ],
)
def test_generate_errors(kind, name, exc, message):
    gen = ConfigGenerator(client=Reader())
    with pytest.raises(exc) as info:
        gen.generate(GitOpsSetGenerator(config=ConfigSpec(kind=kind, name=name)), GITOPS_SET)
    assert str(info.value) == message


def test_generate_from_config_map():
    reader = Reader([{
        "kind": "ConfigMap",
        "metadata": {"name": "test-config-map", "namespace": "testing"},
        "data": {"test-key1": "test-value1", "test-key2": "test-value2"},
    }])
    got = ConfigGenerator(client=reader).generate(
        GitOpsSetGenerator(config=ConfigSpec(kind="ConfigMap", name="test-config-map")), GITOPS_SET
    )
    assert got == [{"test-key1": "test-value1", "test-key2": "test-value2"}]


def test_generate_from_secret():
    reader = Reader([{
        "kind": "Secret",
        "metadata": {"name": "test-config-secret", "namespace": "testing"},
        "data": {"test-key1": b"test-value1", "test-key2": b"test-value2"},
    }])
    got = ConfigGenerator(client=reader).generate(
        GitOpsSetGenerator(config=ConfigSpec(kind="Secret", name="test-config-secret")), GITOPS_SET
    )
    assert got == [{"test-key1": "test-value1", "test-key2": "test-value2"}]
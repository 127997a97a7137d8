import pytest

from gitopssets.generators import NO_REQUEUE_INTERVAL, EmptyGitOpsSetError
from gitopssets.list_generator import ListGenerator, generator_factory
from gitopssets.spec import GitOpsSetGenerator
from gitopssets.spec import ListGenerator as ListSpec


def test_generate_with_no_list():
    assert generator_factory(None, None).generate(GitOpsSetGenerator(), None) is None


@pytest.mark.parametrize(
    "elements,want",
    [
        (['{"cluster": "cluster","url": "url"}'], [{"cluster": "cluster", "url": "url"}]),
        (
            [b'{"cluster": "cluster","url": "url","values":{"foo":"bar"}}'],
            [{"cluster": "cluster", "url": "url", "values": {"foo": "bar"}}],
        ),
    ],
)
def test_generate(elements, want):
    gen = generator_factory(None, None)
    assert gen.generate(GitOpsSetGenerator(list=ListSpec(elements=elements)), None) == want


def test_generate_bad_json():
    gen = generator_factory(None, None)
    with pytest.raises(ValueError, match="error unmarshaling list element"):
        gen.generate(GitOpsSetGenerator(list=ListSpec(elements=["{"])), None)


def test_generate_no_generator():
    with pytest.raises(EmptyGitOpsSetError, match="GitOpsSet is empty"):
        generator_factory(None, None).generate(None, None)


def test_interval():
    sg = GitOpsSetGenerator(list=ListSpec(elements=['{"cluster": "cluster","url": "url"}']))
    assert ListGenerator().interval(sg) == NO_REQUEUE_INTERVAL
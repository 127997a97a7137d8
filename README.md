# gitopssets

`gitopssets` turns a GitOpsSet description into a list of parameter maps, one
for each resource that a template should be rendered for. Each kind of source
has its own generator, and each one returns a list of plain dictionaries.

| Generator        | Module                         | Produces one element per…                        |
|------------------|--------------------------------|--------------------------------------------------|
| `List`           | `gitopssets.list_generator`    | inline JSON element                              |
| `Config`         | `gitopssets.config_generator`  | referenced ConfigMap or Secret (one element)     |
| `Cluster`        | `gitopssets.cluster`           | `GitopsCluster` whose labels match a selector    |
| `GitRepository`  | `gitopssets.gitrepository`     | file or directory in a repository artifact       |
| `OCIRepository`  | `gitopssets.ocirepository`     | file or directory in an OCI artifact             |
| `ImagePolicy`    | `gitopssets.imagepolicy`       | image policy (latest and previous tags)          |
| `PullRequests`   | `gitopssets.pullrequests`      | open pull request, filtered by labels and forks  |
| `Matrix`         | `gitopssets.matrix`            | combination of the elements of nested generators |

## Installation

```
pip install gitopssets
```

## Describing a GitOpsSet

The dataclasses in `gitopssets.spec` describe generators.
`GitOpsSetGenerator` has one optional field per generator kind (`list`,
`config`, `cluster`, `git_repository`, `oci_repository`, `image_policy`,
`pull_requests`, `matrix`, and `api_client`, which no generator in this
package handles). A `GitOpsSet` supplies the namespace that referenced
objects are looked up in.

Objects such as Secrets, ConfigMaps, clusters and repositories are read
through a `gitopssets.spec.Reader`, which holds objects in memory as
dictionaries with a `"kind"` and a `"metadata"` mapping (`name`, `namespace`,
and optionally `labels` and `annotations`):

* `Reader.get(kind, key)` returns a copy of the object for an `ObjectKey`, or
  raises `NotFoundError` (a `LookupError`).
* `Reader.list(kind, selector)` returns the objects a `LabelSelector` matches,
  sorted by namespace and name. A selector supports `match_labels` and
  `match_expressions` with the operators `In`, `NotIn`, `Exists` and
  `DoesNotExist`; an empty selector matches everything.

## Generating

Every generator derives from the abstract class
`gitopssets.generators.Generator`:

* `generate(generator, gitops_set)` returns a list of dictionaries. It returns
  `None` when the generator's own section is absent, and raises
  `EmptyGitOpsSetError` when no generator is given at all.
* `interval(generator)` returns the time to wait before generating again. It
  is the configured interval for `PullRequests`, zero for `List`, `Config`,
  `Cluster`, `GitRepository`, `OCIRepository` and `ImagePolicy`, and for
  `Matrix` the shortest non-zero interval of its nested generators.

Each generator module has a `generator_factory`. For most it takes a logger
and a `Reader` and returns a generator; `gitrepository.generator_factory`
and `ocirepository.generator_factory` take an `ArchiveFetcher` and return
such a factory, and `matrix.generator_factory` takes a mapping of generator
names to factories. A logger of `None` uses the module's own logger.

```python
from gitopssets import list_generator, spec

gen = list_generator.generator_factory(None, None)
params = gen.generate(
    spec.GitOpsSetGenerator(list=spec.ListGenerator(elements=['{"env": "dev"}'])),
    None,
)
# [{'env': 'dev'}]
```

Errors you may need to handle:

* `NoArtifactError` — a repository or image policy has nothing to generate
  from yet.
* `GeneratorNotEnabledError` — a nested definition uses a generator that is
  not in the map given to the matrix generator. Two such errors compare equal
  when they name the same generator.

`find_relevant_generators(set_generator, enabled)` returns the enabled
generators for every section set on a generator definition.

### Details per generator

* **Config** reads `data` from a `ConfigMap` or `Secret`; byte values are
  decoded to text. Any other kind raises `ValueError`.
* **Cluster** produces `ClusterName`, `ClusterNamespace`, `ClusterLabels` and
  `ClusterAnnotations` for each `GitopsCluster`.
* **GitRepository / OCIRepository** read `status.artifact.url` and
  `status.artifact.digest` from the referenced object, then generate from
  `files` or `directories`; with neither set they raise
  `EmptyGitOpsSetError`.
* **ImagePolicy** reads `status.latestImage` and
  `status.observedPreviousImage` and produces `latestImage`, `image`,
  `latestTag`, `previousImage` and `previousTag` (empty strings when there is
  no previous image). `parse_tag(reference)` parses an image reference into
  an `ImageTag`, raising `ValueError` for an invalid one.
* **PullRequests** lists open pull requests through an `ScmClient`
  (drivers `github` and `gitea`). A token is taken from the `password` key of
  the referenced Secret. Pull requests must carry every configured label;
  those from forks are skipped unless `forks` is set. Each element has
  `Number`, `Branch`, `HeadSHA`, `CloneURL`, `CloneSSHURL` and `Fork`. Pass
  `client_factory` to `PullRequestGenerator` to supply another client.

## Repository archives

`gitopssets.parser.RepositoryParser` fetches an archive with an
`ArchiveFetcher` and unpacks it into a temporary directory. It then does one
of two things:

* `generate_from_files` parses each listed YAML or JSON file into one mapping.
* `generate_from_directories` matches glob patterns and skips excluded paths.
  Each element has a `Directory` key (`./` followed by the path) and a `Base`
  key.

`HttpArchiveFetcher` downloads a tar archive, retrying on connection errors
and 5xx responses, checks it against a digest such as `sha256:<hex>`, and
unpacks only regular files and directories that stay inside the target.

`secure_join(root, path)` resolves a path, including `..` and symlinks,
inside a root directory and never lets it escape that root.

## Matrix

`gitopssets.matrix.MatrixGenerator` runs each nested definition with the
generators in the map it was given:

```python
from gitopssets import gitrepository, list_generator, matrix
from gitopssets.parser import HttpArchiveFetcher

factories = {
    "List": list_generator.generator_factory,
    "GitRepository": gitrepository.generator_factory(HttpArchiveFetcher()),
}
gen = matrix.generator_factory(factories)(None, reader)
```

`cartesian` merges one element from each nested generator into each result,
and drops duplicates. A named nested generator nests its elements under its
name. In `single_element` mode all elements are gathered into a single map:
the elements of each named generator are listed under its name, and those of
unnamed generators under `Matrix`.

## What this package does not do

* There is no ready-made table of all generators, no default set of enabled
  generators and no check of generator names: you build the mapping of names
  to factories yourself, as above.
* There is no generator that fetches parameters from an arbitrary HTTP
  endpoint; an `api_client` section is accepted in the spec but nothing in
  the package generates from it.
* There is no controller, reconciliation loop or watching of cluster objects,
  and no connection to a cluster: `Reader` serves objects you give it.
* There is no command-line program.
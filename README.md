# zeitgeist

zeitgeist keeps the versions of your dependencies consistent across a code
base. You declare each dependency once in a `dependencies.yaml` file, together
with the files that mention its version, and zeitgeist checks that every one
of those files agrees with the declared version. It can also rewrite those
files when you move a dependency to a new version.

The package also ships `buoy`, a companion tool that reads the direct
dependencies of `go.mod` files and works out which tags or release branches
of those dependencies match a given release.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## The dependencies file

```yaml
dependencies:
  - name: app1
    version: 0.0.1
    scheme: semver
    refPaths:
      - path: test.txt
        match: APP1_VERSION
  - name: base-image
    version: 20180505-commitid
    scheme: alpha
    refPaths:
      - path: Dockerfile
        match: FROM
```

Each dependency needs a `name` and a `version`; a missing one is an error.
The `scheme` decides how two versions are compared:

- `semver` (the default): semantic versions. A leading `v` is allowed.
- `alpha`: plain string ordering.
- `random`: any version that differs counts as newer, which suits hashes.

An optional `sensitivity` of `patch` (the default), `minor` or `major` says how
large a change has to be before a semantic version counts as newer. An
optional `upstream` mapping is read and written back unchanged.

Every entry in `refPaths` names a file, relative to the base path, and a
regular expression. A file is in sync when at least one line matches the
expression and also contains the declared version.

## zeitgeist

```
zeitgeist validate
zeitgeist set-version app1 2.1.0
zeitgeist version
```

- `validate` checks that every file listed in `refPaths` carries the declared
  version, and fails with an error naming the files that do not.
- `set-version <dependency> <version>` checks the files first, then replaces
  the old version with the new one on every line that matches the expression
  and contains the old version, and records the new version in the
  dependencies file.
- `version` prints the installed version of the package.

Options shared by all commands, given before the command name:

- `--config` — location of the dependencies file (default `dependencies.yaml`)
- `--base-path` — directory that `refPaths` are resolved against (defaults to
  the directory of the running program)
- `--log-level` — one of `panic`, `fatal`, `error`, `warning`, `info`,
  `debug`, `trace` (default `info`)
- `--local-only` / `--no-local-only` — limit commands to local checks (on by
  default)

The exit status is 0 on success and 1 on any error, which is printed to
standard error.

## buoy

```
buoy needs go.mod --domain example.com
buoy float go.mod --release v0.15 --domain example.com
buoy check go.mod --release v0.15 --domain example.com --ruleset Release
buoy exists go.mod --release v0.15 --next
```

- `needs` lists, sorted and without duplicates, the direct (not
  `// indirect`) dependencies of one or more `go.mod` files whose module path
  starts with the given domain.
- `float` prints the best reference for each of those dependencies for a
  release: the highest patch tag with the same major and minor (tags with
  pre-release or build data are skipped), then the release branch
  `release-X.Y`, then the default branch. `--domain` defaults to
  `knative.dev`; `--ruleset` defaults to `Any`.
- `check` exits with status 1 and prints the dependencies that have no
  suitable reference under the chosen ruleset (default `ReleaseOrBranch`).
  `--verbose` writes each verdict to standard error.
- `exists` exits with status 1 when the module itself has no release branch
  for the release; `--next` prints the next release tag and `--verbose`
  writes details to standard error.

Releases are given as `<major>.<minor>`, with or without a leading `v`.

Rulesets, matched case-insensitively:

| Ruleset           | Accepts                                         |
|-------------------|-------------------------------------------------|
| `Any`             | release tags, release branches, default branch  |
| `ReleaseOrBranch` | release tags, release branches                  |
| `Release`         | release tags                                    |
| `Branch`          | release branches                                |

`float`, `check` and `exists` resolve each module by fetching
`https://<module>?go-get=1`, reading its `go-import` meta tag, and listing the
tags and branches of the git repository it names.

## Using the library

```python
from zeitgeist.dependency import new_local_client
from zeitgeist.version import Version, VersionSensitivity, format_version
from zeitgeist.buoy.ruleset import ruleset, rulesets
from zeitgeist.buoy.gomod import module

client = new_local_client()
client.local_check("dependencies.yaml", ".")
client.set_version("dependencies.yaml", ".", "app1", "2.1.0")

Version("1.1.0").more_sensitively_recent_than(Version("1.0.0"), VersionSensitivity.MINOR)  # True
format_version("v1.0.0", "2.0.0")  # 'v2.0.0'

print(rulesets())          # ['Any', 'ReleaseOrBranch', 'Release', 'Branch']
print(ruleset("release"))  # Release

name, deps = module("go.mod", "example.com")
```

`zeitgeist.buoy.git.Repo.best_ref_for` applies the ruleset rules to a list of
tags and branches you supply yourself, without any network access.

## What this package does not do

- There is no source of upstream versions. `zeitgeist export` and
  `zeitgeist upgrade`, and `zeitgeist validate --no-local-only`, stop with an
  error saying that remote functionality is not supported; the same holds for
  `remote_check`, `upgrade`, `remote_export` and `check_upstream_versions` on
  `LocalClient`.
- Git repositories are listed only over HTTP(S) or from a local directory or
  `file://` URL; SSH and `git://` remotes are not supported.
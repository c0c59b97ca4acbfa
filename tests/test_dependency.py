import pytest
import yaml

from zeitgeist.dependency import (
    Dependencies,
    Dependency,
    DependencyError,
    OutOfSyncError,
    RefPath,
    UnsupportedError,
    from_file,
    new_local_client,
    new_remote_client,
    to_file,
)
from zeitgeist.version import VersionScheme, VersionSensitivity


def _write(path, text):
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def workspace(tmp_path):
    _write(tmp_path / "Dockerfile", "FROM builder:1.22.2\nRUN make build\n")
    _write(tmp_path / "Makefile", "TOOL_VERSION ?= 1.22.2\nall:\n\tmake app\n")
    return tmp_path


def _config(tmp_path, name, text):
    return _write(tmp_path / name, text)


def test_unsupported():
    client = new_local_client()
    with pytest.raises(UnsupportedError):
        client.remote_check("")
    with pytest.raises(UnsupportedError):
        client.remote_export("")
    with pytest.raises(UnsupportedError):
        client.upgrade("", "")
    with pytest.raises(UnsupportedError):
        client.check_upstream_versions([])


def test_remote_unsupported():
    with pytest.raises(UnsupportedError):
        new_remote_client()


def test_local_success(workspace):
    config = _config(
        workspace,
        "local.yaml",
        """
dependencies:
  - name: builder
    version: 1.22.2
    refPaths:
    - path: Dockerfile
      match: FROM builder
    - path: Makefile
      match: TOOL_VERSION
""",
    )
    assert new_local_client().local_check(config, workspace) is None


def test_broken_file(workspace):
    client = new_local_client()
    with pytest.raises(FileNotFoundError):
        client.local_check(workspace / "does-not-exist", workspace)
    with pytest.raises(DependencyError):
        client.local_check(workspace / "Dockerfile", workspace)


def test_local_out_of_sync(workspace):
    config = _config(
        workspace,
        "local-out-of-sync.yaml",
        """
dependencies:
  - name: builder
    version: 1.21.0
    refPaths:
    - path: Dockerfile
      match: FROM builder
    - path: Makefile
      match: TOOL_VERSION
""",
    )
    with pytest.raises(OutOfSyncError) as excinfo:
        new_local_client().local_check(config, workspace)
    assert excinfo.value.paths == ["Dockerfile", "Makefile"]
    assert excinfo.value.name == "builder"


def test_local_invalid(workspace):
    config = _config(
        workspace,
        "local-invalid.yaml",
        """
dependencies:
  - name: builder
    version: 1.22.2
    refPaths:
    - path: Dockerfile
      match: FROM builder[
""",
    )
    with pytest.raises(DependencyError, match="compiling regex"):
        new_local_client().local_check(config, workspace)


def test_file_doesnt_exist(workspace):
    config = _config(
        workspace,
        "local-no-file.yaml",
        """
dependencies:
  - name: builder
    version: 1.22.2
    refPaths:
    - path: missing-file
      match: FROM builder
""",
    )
    with pytest.raises(FileNotFoundError):
        new_local_client().local_check(config, workspace)


@pytest.mark.parametrize("text", ["a b c", "name:", "name: test", "version: 1.0.0"])
def test_deserialising_invalid(text):
    with pytest.raises(DependencyError):
        Dependency.from_dict(yaml.safe_load(text))


@pytest.mark.parametrize(
    "text, version",
    [("name: test\nversion: 1.0.0", "1.0.0"), ("name: test\nversion: 100", "100")],
)
def test_deserialising_valid(text, version):
    dep = Dependency.from_dict(yaml.safe_load(text))
    assert dep.name == "test"
    assert dep.version == version
    assert dep.scheme == VersionScheme.SEMVER
    assert dep.ref_paths == []


def test_unknown_scheme_rejected():
    with pytest.raises(DependencyError, match="unknown version scheme"):
        Dependency.from_dict({"name": "a", "version": "1", "scheme": "foo"})


def test_from_file_keeps_versions_as_text(tmp_path):
    config = _config(
        tmp_path,
        "deps.yaml",
        """
dependencies:
  - name: tool
    version: 1.10
    scheme: alpha
    sensitivity: minor
    upstream:
      flavour: dummy
    refPaths:
    - path: a.txt
      match: TOOL
""",
    )
    deps = from_file(config)
    dep = deps.dependencies[0]
    assert dep.version == "1.10"
    assert dep.scheme == VersionScheme.ALPHA
    assert dep.sensitivity == VersionSensitivity.MINOR
    assert dep.upstream == {"flavour": "dummy"}
    assert dep.ref_paths == [RefPath(path="a.txt", match="TOOL")]


def test_to_file_round_trip(tmp_path):
    original = Dependencies(
        [
            Dependency(
                name="tool",
                version="1.10",
                upstream={"flavour": "dummy"},
                ref_paths=[RefPath("a.txt", "TOOL")],
            ),
            Dependency(name="other", version="100", scheme=VersionScheme.RANDOM),
        ]
    )
    path = tmp_path / "out.yaml"
    to_file(path, original)
    assert from_file(path) == original


def test_empty_file_has_no_dependencies(tmp_path):
    path = _config(tmp_path, "empty.yaml", "")
    assert from_file(path).dependencies == []


def test_set_version(tmp_path):
    test_file = _write(tmp_path / "test.txt", "APP1_VERSION: 0.0.1\nAPP2_VERSION: 0.0.1")
    config = _config(
        tmp_path,
        "dependencies.yaml",
        """
dependencies:
  - name: app1
    version: 0.0.1
    scheme: semver
    upstream:
      flavour: dummy
      url: example/example
    refPaths:
    - path: test.txt
      match: APP1_VERSION
  - name: app2
    version: 0.0.1
    scheme: semver
    refPaths:
    - path: test.txt
      match: APP2_VERSION
""",
    )
    new_local_client().set_version(config, tmp_path, "app1", "2.1.0")

    assert test_file.read_text(encoding="utf-8") == "APP1_VERSION: 2.1.0\nAPP2_VERSION: 0.0.1"
    versions = {dep.name: dep.version for dep in from_file(config).dependencies}
    assert versions == {"app1": "2.1.0", "app2": "0.0.1"}


def test_set_version_unknown_dependency(tmp_path):
    config = _config(
        tmp_path,
        "dependencies.yaml",
        "dependencies:\n  - name: app1\n    version: 0.0.1\n",
    )
    with pytest.raises(DependencyError, match="dependency missing not found"):
        new_local_client().set_version(config, tmp_path, "missing", "1.0.0")
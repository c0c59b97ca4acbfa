import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest
import semver

from zeitgeist.buoy.git import (
    Info,
    RefType,
    Repo,
    get_repo,
    normalize_branch_version,
    normalize_tag_version,
    parse_ref,
    parse_tolerant,
    release_branch_version,
    release_version,
)
from zeitgeist.buoy.ruleset import RulesetType

SHA = "1234567890abcdef1234567890abcdef12345678"


@pytest.fixture
def repo():
    return Repo(
        ref="ref",
        default_branch="main",
        tags=["v0.1.0", "bar", "v0.2.0", "baz", "v0.2.1", "v0.2.2-rc.1", "v0.2.2+build", "foo"],
        branches=["release-0.1", "bar", "release-0.2", "baz", "main", "release-0.3"],
    )


@pytest.mark.parametrize(
    "version, rule, want, kind",
    [
        ("0.1.0", RulesetType.ANY, "ref@v0.1.0", RefType.RELEASE),
        ("0.2.0", RulesetType.ANY, "ref@v0.2.1", RefType.RELEASE),
        ("0.3.0", RulesetType.ANY, "ref@release-0.3", RefType.RELEASE_BRANCH),
        ("0.4.0", RulesetType.ANY, "ref@main", RefType.DEFAULT_BRANCH),
        ("0.1.0", RulesetType.RELEASE_OR_RELEASE_BRANCH, "ref@v0.1.0", RefType.RELEASE),
        ("0.2.0", RulesetType.RELEASE_OR_RELEASE_BRANCH, "ref@v0.2.1", RefType.RELEASE),
        ("0.3.0", RulesetType.RELEASE_OR_RELEASE_BRANCH, "ref@release-0.3", RefType.RELEASE_BRANCH),
        ("0.4.0", RulesetType.RELEASE_OR_RELEASE_BRANCH, "ref", RefType.NO_REF),
        ("0.1.0", RulesetType.RELEASE, "ref@v0.1.0", RefType.RELEASE),
        ("0.2.0", RulesetType.RELEASE, "ref@v0.2.1", RefType.RELEASE),
        ("0.3.0", RulesetType.RELEASE, "ref", RefType.NO_REF),
        ("0.4.0", RulesetType.RELEASE, "ref", RefType.NO_REF),
        ("0.1.0", RulesetType.RELEASE_BRANCH, "ref@release-0.1", RefType.RELEASE_BRANCH),
        ("0.2.0", RulesetType.RELEASE_BRANCH, "ref@release-0.2", RefType.RELEASE_BRANCH),
        ("0.3.0", RulesetType.RELEASE_BRANCH, "ref@release-0.3", RefType.RELEASE_BRANCH),
        ("0.4.0", RulesetType.RELEASE_BRANCH, "ref", RefType.NO_REF),
    ],
)
def test_best_ref_for(repo, version, rule, want, kind):
    got, got_kind = repo.best_ref_for(semver.Version.parse(version), rule)
    assert got == want
    assert got_kind is kind


@pytest.mark.parametrize(
    "version, want, ok",
    [("v0.1.0", "0.1.0", True), ("v1.2.3", "1.2.3", True), ("notarelease", "notarelease", False)],
)
def test_normalize_tag_version(version, want, ok):
    assert normalize_tag_version(version) == (want, ok)


@pytest.mark.parametrize(
    "version, want, ok",
    [
        ("release-0.1", "0.1.0", True),
        ("release-1.2", "1.2.0", True),
        ("notarelease", "notarelease", False),
    ],
)
def test_normalize_branch_version(version, want, ok):
    assert normalize_branch_version(version) == (want, ok)


@pytest.mark.parametrize(
    "version, want", [(semver.Version(1, 2, 3), "v1.2.3"), (semver.Version(0, 1, 0), "v0.1.0")]
)
def test_release_version(version, want):
    assert release_version(version) == want


@pytest.mark.parametrize(
    "version, want",
    [(semver.Version(1, 2, 3), "release-1.2"), (semver.Version(0, 1, 0), "release-0.1")],
)
def test_release_branch_version(version, want):
    assert release_branch_version(version) == want


@pytest.mark.parametrize(
    "kind, want",
    [
        (RefType.DEFAULT_BRANCH, "Default Branch"),
        (RefType.RELEASE_BRANCH, "Release Branch"),
        (RefType.RELEASE, "Release"),
        (RefType.NO_REF, "No Ref"),
        (RefType.BRANCH, ""),
        (RefType.UNDEFINED, ""),
    ],
)
def test_ref_type_str(kind, want):
    assert str(kind) == want


@pytest.mark.parametrize(
    "ref, module, reference, kind",
    [
        ("foo@v0.1.1", "foo", "v0.1.1", RefType.RELEASE),
        ("foo@release-v0.1", "foo", "release-v0.1", RefType.RELEASE_BRANCH),
        ("foo@default", "foo", "default", RefType.BRANCH),
        ("invalid", "invalid", "", RefType.UNDEFINED),
        ("", "", "", RefType.UNDEFINED),
    ],
)
def test_parse_ref(ref, module, reference, kind):
    assert parse_ref(ref) == (module, reference, kind)


@pytest.mark.parametrize(
    "text, want",
    [
        ("v0.12", semver.Version(0, 12, 0)),
        ("v0.15", semver.Version(0, 15, 0)),
        ("1", semver.Version(1, 0, 0)),
        (" v1.02.3 ", semver.Version(1, 2, 3)),
        ("v99.88", semver.Version(99, 88, 0)),
    ],
)
def test_parse_tolerant(text, want):
    assert parse_tolerant(text) == want


@pytest.mark.parametrize("text", ["not gonna work", "1.2-rc.1", ""])
def test_parse_tolerant_rejects(text):
    with pytest.raises(ValueError):
        parse_tolerant(text)


def test_info_head_ref():
    info = Info(user_id="github_user", head="branch_foo")
    assert info.head_ref() == "github_user:branch_foo"


def _write_repo(root):
    git_dir = root / ".git"
    (git_dir / "refs" / "heads").mkdir(parents=True)
    (git_dir / "refs" / "tags").mkdir(parents=True)
    (git_dir / "HEAD").write_text("ref: refs/heads/master\n")
    (git_dir / "refs" / "heads" / "master").write_text(SHA + "\n")
    (git_dir / "refs" / "heads" / "branch").write_text(SHA + "\n")
    (git_dir / "packed-refs").write_text(
        "# pack-refs with: peeled fully-peeled sorted\n"
        f"{SHA} refs/tags/v1.0.0\n"
        f"^{SHA}\n"
    )


def test_get_repo_local(tmp_path):
    _write_repo(tmp_path)
    repo = get_repo("foo", str(tmp_path))
    assert repo.ref == "foo"
    assert repo.default_branch == "master"
    assert sorted(repo.branches) == ["branch", "master"]
    assert repo.tags == ["v1.0.0"]


def test_get_repo_file_url(tmp_path):
    _write_repo(tmp_path)
    repo = get_repo("foo", (tmp_path / ".git").as_uri())
    assert repo.default_branch == "master"
    assert len(repo.branches) == 2


def test_get_repo_error():
    with pytest.raises(ValueError):
        get_repo("foo", "invalid")


def _pkt(text):
    payload = text.encode()
    return f"{len(payload) + 4:04x}".encode() + payload


def _serve(body, content_type):
    class Handler(BaseHTTPRequestHandler):
        def do_GET(self):
            self.send_response(200)
            self.send_header("Content-Type", content_type)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)

        def log_message(self, *args):
            pass

    server = HTTPServer(("127.0.0.1", 0), Handler)
    threading.Thread(target=server.serve_forever, daemon=True).start()
    return server


def test_get_repo_http():
    body = b"".join(
        [
            _pkt("# service=git-upload-pack\n"),
            b"0000",
            _pkt(f"{SHA} HEAD\0multi_ack symref=HEAD:refs/heads/main agent=git/2\n"),
            _pkt(f"{SHA} refs/heads/main\n"),
            _pkt(f"{SHA} refs/heads/release-0.1\n"),
            _pkt(f"{SHA} refs/tags/v0.1.0\n"),
            _pkt(f"{SHA} refs/tags/v0.1.0^{{}}\n"),
            b"0000",
        ]
    )
    server = _serve(body, "application/x-git-upload-pack-advertisement")
    try:
        repo = get_repo("mod", f"http://127.0.0.1:{server.server_address[1]}/org/repo")
    finally:
        server.shutdown()
        server.server_close()
    assert repo.default_branch == "main"
    assert repo.branches == ["main", "release-0.1"]
    assert repo.tags == ["v0.1.0"]
    assert repo.best_ref_for(semver.Version(0, 1, 0), RulesetType.ANY) == (
        "mod@v0.1.0",
        RefType.RELEASE,
    )


def test_get_repo_http_not_git():
    server = _serve(b"<html>nope</html>", "text/html")
    try:
        with pytest.raises(ValueError):
            get_repo("mod", f"http://127.0.0.1:{server.server_address[1]}/")
    finally:
        server.shutdown()
        server.server_close()
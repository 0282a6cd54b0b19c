"""
Tests for package specifier resolution.

This test suite covers:
1. Registry specifiers (version, range, tag)
2. Local, remote and git specifiers
3. Package name validation
"""

import os

import pytest

from extman.registry.spec import InvalidSpecError, resolve_spec, validate_package_name


class TestRegistrySpecs:
    """Test specifiers served by the registry."""

    def test_exact_version(self):
        """Exact versions should resolve to type 'version'."""
        spec = resolve_spec("foo", "1.2.3")

        assert spec.type == "version"
        assert spec.name == "foo"
        assert spec.raw == "foo@1.2.3"
        assert spec.fetch_spec == "1.2.3"
        assert spec.registry

    def test_prefixed_version(self):
        """'v' prefixed versions should be normalized."""
        assert resolve_spec("foo", "v1.2.3").fetch_spec == "1.2.3"

    def test_range(self):
        """Ranges should resolve to type 'range'."""
        for each in ("^1.0.0", "~1.2", "1.x", ">=1 <2", "*"):
            assert resolve_spec("foo", each).type == "range", each

    def test_tag(self):
        """Anything else should be a dist-tag."""
        assert resolve_spec("foo", "latest").type == "tag"
        assert resolve_spec("foo", "next").fetch_spec == "next"
        assert resolve_spec("foo").raw == "foo@latest"

    def test_invalid_tag(self):
        """Tags with url-unsafe characters should be rejected."""
        with pytest.raises(InvalidSpecError, match="Invalid tag name"):
            resolve_spec("foo", "bad tag")

    def test_registry_spec_requires_name(self):
        """Registry specifiers without a name should be rejected."""
        with pytest.raises(InvalidSpecError, match="name is required"):
            resolve_spec(None, "1.0.0")

    def test_scoped_name(self):
        """Scoped names should be accepted."""
        spec = resolve_spec("@acme/tool", "^0.1.0")
        assert spec.type == "range"
        assert spec.raw == "@acme/tool@^0.1.0"


class TestSourceSpecs:
    """Test local, remote and git specifiers."""

    def test_directory(self):
        """Relative paths should resolve to absolute directories."""
        spec = resolve_spec("foo", "./local/ext")

        assert spec.type == "directory"
        assert spec.fetch_spec == os.path.abspath("./local/ext")
        assert not spec.registry

    def test_tarball_file(self):
        """file: tarballs should resolve to type 'file'."""
        spec = resolve_spec(None, "file:../dist/ext-1.0.0.tgz")

        assert spec.type == "file"
        assert spec.fetch_spec == os.path.abspath("../dist/ext-1.0.0.tgz")

    def test_remote(self):
        """Tarball URLs should resolve to type 'remote'."""
        spec = resolve_spec("foo", "https://example.com/foo-1.0.0.tgz")

        assert spec.type == "remote"
        assert spec.fetch_spec == "https://example.com/foo-1.0.0.tgz"

    def test_hosted_git(self):
        """Hosted shortcuts should expand to clone URLs."""
        spec = resolve_spec("foo", "github:user/repo#v1.0.0")

        assert spec.type == "git"
        assert spec.fetch_spec == "https://github.com/user/repo.git"
        assert spec.committish == "v1.0.0"

    def test_github_shortcut(self):
        """user/repo should mean a GitHub repository."""
        spec = resolve_spec(None, "user/repo")

        assert spec.type == "git"
        assert spec.fetch_spec == "https://github.com/user/repo.git"
        assert spec.committish is None

    def test_git_plus_url(self):
        """git+ prefixes should be stripped from the clone URL."""
        spec = resolve_spec("foo", "git+https://example.com/repo.git#abc123")

        assert spec.fetch_spec == "https://example.com/repo.git"
        assert spec.committish == "abc123"

    def test_scp_url(self):
        """scp-style URLs should be git specifiers."""
        spec = resolve_spec("foo", "git@github.com:user/repo.git")

        assert spec.type == "git"
        assert spec.fetch_spec == "git@github.com:user/repo.git"

    def test_git_url_keeps_scheme(self):
        """Installable git references should keep the git+ scheme."""
        assert resolve_spec("foo", "git+https://example.com/repo.git#abc").git_url == (
            "git+https://example.com/repo.git"
        )
        assert resolve_spec("foo", "git+ssh://git@example.com/repo.git").git_url == (
            "git+ssh://git@example.com/repo.git"
        )
        assert resolve_spec("foo", "git@example.com:user/repo.git").git_url == (
            "git+ssh://git@example.com:user/repo.git"
        )
        assert resolve_spec("foo", "git://example.com/repo.git").git_url == (
            "git://example.com/repo.git"
        )
        assert resolve_spec("foo", "github:user/repo").git_url == (
            "git+https://github.com/user/repo.git"
        )
        assert resolve_spec("foo", "1.0.0").git_url is None



class TestPackageNames:
    """Test package name validation."""

    def test_valid_names(self):
        """Lowercase url-safe names should pass."""
        for name in ("foo", "foo-bar", "foo.js", "@scope/foo", "a_b"):
            validate_package_name(name)

    def test_invalid_names(self):
        """Invalid names should be rejected."""
        for name in ("", "Foo", ".hidden", "_private", "node_modules", " foo", "a" * 215, "a b"):
            with pytest.raises(InvalidSpecError):
                validate_package_name(name)

"""
Package Specifier Resolution.

This module converts a (name, version-or-spec) request into a canonical
ResolvedSpec using npm-style rules.

Supported specifier types:
- version: exact semantic version ("1.2.3", "=1.2.3", "v1.2.3")
- range: semantic version range ("^1.0.0", "~1.2", ">=1 <2", "1.x", "*")
- tag: dist-tag ("latest", "next")
- directory / file: local path or tarball ("./ext", "/abs/ext", "file:../x.tgz")
- remote: tarball URL ("https://host/ext-1.0.0.tgz")
- git: VCS reference ("git+https://...", "git@host:u/r.git", "github:u/r#v1", "u/r")
"""

import os
import re
from dataclasses import dataclass
from urllib.parse import quote

from extman.extension.manifest import is_valid_range, parse_version


class InvalidSpecError(ValueError):
    """Raised when a name or specifier is malformed."""

    pass


REGISTRY_TYPES = ("version", "range", "tag")

_NAME_PATTERN = re.compile(r"^(?:@[a-z0-9-*~][a-z0-9-*._~]*/)?[a-z0-9-~][a-z0-9-._~]*$")
_FILESPEC_PATTERN = re.compile(r"^(?:\.|~/|[/\\]|[a-zA-Z]:)")
_TARBALL_PATTERN = re.compile(r"\.(?:tgz|tar\.gz|tar)$", re.IGNORECASE)
_SHORTCUT_PATTERN = re.compile(r"^[\w.-]+/[\w.-]+(?:#.*)?$")
_SCP_PATTERN = re.compile(r"^[\w.-]+@[\w.-]+:.+")

_HOSTED_GIT = {
    "github": "https://github.com/{path}.git",
    "gitlab": "https://gitlab.com/{path}.git",
    "bitbucket": "https://bitbucket.org/{path}.git",
}


@dataclass(frozen=True)
class ResolvedSpec:
    """
    Canonical form of a package request.

    Attributes:
        type: Specifier type (version, range, tag, directory, file, remote, git)
        name: Package name (None when only a path/url was given)
        raw: Full request string ("name@spec" or the bare spec)
        raw_spec: Specifier as given
        fetch_spec: What to fetch (version, range, tag, path, url or clone url)
        committish: Git ref for git specifiers
    """

    type: str
    name: str | None
    raw: str
    raw_spec: str
    fetch_spec: str
    committish: str | None = None

    @property
    def registry(self) -> bool:
        """True when the specifier is served by the package registry."""
        return self.type in REGISTRY_TYPES

    @property
    def git_url(self) -> str | None:
        """Installable git reference (git+<scheme>://...) without the committish."""
        if self.type != "git":
            return None
        url = self.fetch_spec
        if url.startswith("git://"):
            return url
        if _SCP_PATTERN.match(url):
            return f"git+ssh://{url}"
        return f"git+{url}"



def validate_package_name(name: str) -> None:
    """
    Validate a package name.

    Args:
        name: Package name ("foo" or "@scope/foo")

    Raises:
        InvalidSpecError: If the name is not a valid package name
    """
    if not name:
        raise InvalidSpecError("Package name cannot be empty")
    if name != name.strip():
        raise InvalidSpecError(f"Invalid package name '{name}': leading or trailing spaces")
    if len(name) > 214:
        raise InvalidSpecError(f"Invalid package name '{name}': longer than 214 characters")
    if name.startswith((".", "_")):
        raise InvalidSpecError(f"Invalid package name '{name}': cannot start with '.' or '_'")
    if name.lower() in ("node_modules", "favicon.ico"):
        raise InvalidSpecError(f"Invalid package name '{name}': reserved name")
    if not _NAME_PATTERN.match(name):
        raise InvalidSpecError(
            f"Invalid package name '{name}': must be lowercase and url-safe"
        )


def _is_url_safe(text: str) -> bool:
    return quote(text, safe="-_.!~*'()") == text


def _git_spec(name: str | None, raw: str, spec: str) -> ResolvedSpec:
    url, _, committish = spec.partition("#")

    prefix, sep, path = url.partition(":")
    if sep and prefix in _HOSTED_GIT and not path.startswith("//"):
        fetch = _HOSTED_GIT[prefix].format(path=path.removesuffix(".git"))
    elif _SHORTCUT_PATTERN.match(spec) and "://" not in url:
        fetch = _HOSTED_GIT["github"].format(path=url.removesuffix(".git"))
    elif url.startswith("git+"):
        fetch = url[len("git+"):]
    else:
        fetch = url

    return ResolvedSpec(
        type="git",
        name=name,
        raw=raw,
        raw_spec=spec,
        fetch_spec=fetch,
        committish=committish or None,
    )


def _path_spec(name: str | None, raw: str, spec: str) -> ResolvedSpec:
    path = spec[len("file:"):] if spec.startswith("file:") else spec
    if path.startswith("//"):
        path = path[2:]
    path = os.path.abspath(os.path.expanduser(path))
    kind = "file" if _TARBALL_PATTERN.search(path) else "directory"
    return ResolvedSpec(type=kind, name=name, raw=raw, raw_spec=spec, fetch_spec=path)


def _is_git(spec: str) -> bool:
    url = spec.partition("#")[0]
    prefix = url.partition(":")[0]
    if url.startswith(("git+", "git://")) or prefix in _HOSTED_GIT:
        return True
    if url.startswith(("http://", "https://")) and url.endswith(".git"):
        return True
    if _SCP_PATTERN.match(url) and "://" not in url:
        return True
    return bool(_SHORTCUT_PATTERN.match(spec)) and not spec.startswith("@")


def resolve_spec(name: str | None, spec: str | None = None) -> ResolvedSpec:
    """
    Resolve a name and specifier into a ResolvedSpec.

    Args:
        name: Package name (may be None for path, url and git specifiers)
        spec: Version, range, tag, path, url or git reference (default: "latest")

    Returns:
        ResolvedSpec object

    Raises:
        InvalidSpecError: If name or specifier is malformed

    Example:
        resolve_spec("foo", "^1.0.0").type  # 'range'
        resolve_spec("foo", "1.2.3").type   # 'version'
        resolve_spec("foo", "./local").type # 'directory'
    """
    spec = "latest" if spec is None else spec.strip()
    if name:
        validate_package_name(name)
    raw = f"{name}@{spec}" if name else spec

    if spec.startswith("file:") or _FILESPEC_PATTERN.match(spec):
        return _path_spec(name, raw, spec)

    if _is_git(spec):
        return _git_spec(name, raw, spec)

    if spec.startswith(("http://", "https://")):
        return ResolvedSpec(type="remote", name=name, raw=raw, raw_spec=spec, fetch_spec=spec)

    if not name:
        raise InvalidSpecError(f"A package name is required for registry specifier '{spec}'")

    registry_spec = spec or "latest"

    if parse_version(registry_spec) is not None:
        fetch = str(parse_version(registry_spec))
        return ResolvedSpec(
            type="version", name=name, raw=raw, raw_spec=spec, fetch_spec=fetch
        )

    if is_valid_range(registry_spec):
        return ResolvedSpec(
            type="range", name=name, raw=raw, raw_spec=spec, fetch_spec=registry_spec
        )

    if not _is_url_safe(registry_spec):
        raise InvalidSpecError(
            f"Invalid tag name \"{registry_spec}\" of package \"{raw}\": "
            "Tags may not have any characters that encodeURIComponent encodes."
        )

    return ResolvedSpec(type="tag", name=name, raw=raw, raw_spec=spec, fetch_spec=registry_spec)

"""
Shared fixtures for extman tests.

The registry is served by httpx.MockTransport and the installer is
replaced by FakeInstaller, which lays the package out on disk the way
npm does (<target>/node_modules/<name>/package.json).
"""

import asyncio
import json
import tempfile
from pathlib import Path
from urllib.parse import unquote

import httpx
import pytest
import pytest_asyncio

from extman.extension.installer import InstallerError, InstallerResult
from extman.extension.locks import CriticalSection
from extman.extension.manager import ExtensionManager
from extman.registry.client import NpmRegistryClient

REGISTRY_URL = "https://registry.test"


def make_packument(name: str, versions: list[str], scripts: dict | None = None) -> dict:
    """Build a registry document for name with the given versions."""
    basename = name.rsplit("/", 1)[-1]
    document = {"name": name, "dist-tags": {"latest": versions[-1]}, "versions": {}}
    for version in versions:
        manifest = {
            "name": name,
            "version": version,
            "description": f"{name} extension",
            "dist": {"tarball": f"{REGISTRY_URL}/{name}/-/{basename}-{version}.tgz"},
        }
        if scripts is not None:
            manifest["scripts"] = dict(scripts)
        document["versions"][version] = manifest
    return document


def make_transport(packuments: dict[str, dict]) -> httpx.MockTransport:
    """Serve packuments by name; everything else is a 404."""

    def handler(request: httpx.Request) -> httpx.Response:
        name = unquote(request.url.path.lstrip("/"))
        if name in packuments:
            return httpx.Response(200, json=packuments[name])
        return httpx.Response(404, json={"error": "Not found"})

    return httpx.MockTransport(handler)


def write_package(folder: Path, manifest: dict) -> Path:
    """Write a package.json into folder."""
    folder.mkdir(parents=True, exist_ok=True)
    path = folder / "package.json"
    path.write_text(json.dumps(manifest), encoding="utf-8")
    return path


class FakeRun:
    """Installer run that writes the package on completion."""

    def __init__(self, installer: "FakeInstaller", target_dir: Path, artifact: str):
        self.installer = installer
        self.target_dir = target_dir
        self.artifact = artifact

    async def wait(self) -> InstallerResult:
        await asyncio.sleep(self.installer.delay)
        if self.installer.fail:
            raise InstallerError(f"Install of '{self.artifact}' failed with exit code 1")

        manifest = self.installer.manifests[self.artifact]
        write_package(self.target_dir / "node_modules" / manifest["name"], manifest)
        return InstallerResult(stdout="", stderr="", exit_code=0)


class FakeInstaller:
    """Stand-in for InstallerTool recording every launch."""

    def __init__(self, packuments: dict[str, dict], fail: bool = False, delay: float = 0.05):
        self.fail = fail
        self.delay = delay
        self.launches: list[tuple[Path, str, bool]] = []
        self.cache_cleans = 0
        self.manifests = {
            manifest["dist"]["tarball"]: {k: v for k, v in manifest.items() if k != "dist"}
            for document in packuments.values()
            for manifest in document["versions"].values()
        }

    def resolve(self) -> str:
        return "/usr/bin/npm"

    async def launch(self, target_dir, artifact, force=False, cwd=None) -> FakeRun:
        self.launches.append((Path(target_dir), artifact, force))
        return FakeRun(self, Path(target_dir), artifact)

    async def clean_cache(self, cwd) -> InstallerResult:
        self.cache_cleans += 1
        return InstallerResult(stdout="", stderr="", exit_code=0)


@pytest.fixture
def packuments():
    """Registry contents used by manager tests."""
    return {
        "hello-ext": make_packument(
            "hello-ext",
            ["1.0.0", "1.2.0", "2.0.0"],
            scripts={"start": 'node ./bin/run.js --flag "a b"', "debug": "node --inspect ./bin/run.js"},
        ),
        "@acme/tool": make_packument("@acme/tool", ["0.1.0", "0.2.0"]),
        "no-scripts": make_packument("no-scripts", ["1.0.0"]),
    }


@pytest.fixture
def installation_root():
    """Temporary installation root."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "extensions"


@pytest.fixture
def installer(packuments):
    return FakeInstaller(packuments)


@pytest.fixture
def registry(packuments):
    return NpmRegistryClient(
        REGISTRY_URL, client=httpx.AsyncClient(transport=make_transport(packuments))
    )


@pytest_asyncio.fixture
async def manager(installation_root, registry, installer):
    """Manager over a fresh root, disposed after the test."""
    manager = await ExtensionManager.create(
        installation_root,
        registry=registry,
        installer=installer,
        critical_section=CriticalSection(),
        runtime_executable="node",
        max_wait=5.0,
    )
    yield manager
    await manager.dispose()
    await registry.aclose()

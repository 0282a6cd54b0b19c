"""
Package.

A Package is a resolved, not yet installed, registry package. Once
installed, a Package is wrapped by an Extension.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from extman.registry.spec import ResolvedSpec

if TYPE_CHECKING:
    from extman.extension.extension import Extension
    from extman.extension.manager import ExtensionManager


@dataclass(frozen=True, eq=False)
class Package:
    """
    Immutable description of a resolved package.

    Attributes:
        resolved_spec: Specifier this package was resolved from (None when
            read back from an installed folder)
        metadata: Registry metadata (_id, name, version, _spec, _resolved, ...)
        manager: Manager that resolved the package
    """

    resolved_spec: ResolvedSpec | None
    metadata: Mapping[str, Any]
    manager: "ExtensionManager | None" = field(default=None, repr=False)

    def __post_init__(self):
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def id(self) -> str:
        return self.metadata["_id"]

    @property
    def name(self) -> str:
        return self.metadata["name"]

    @property
    def version(self) -> str:
        return self.metadata["version"]

    @property
    def resolved(self) -> str:
        """Artifact reference handed to the installer."""
        return self.metadata.get("_resolved", "")

    @property
    def source(self) -> str:
        """Specifier needed to fetch this exact artifact again."""
        spec = self.metadata.get("_spec", "")
        # the registry does not handle exact versions programmatically
        if self.resolved_spec is not None and self.resolved_spec.type == "version":
            return f"{spec}*"
        return spec

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Package):
            return NotImplemented
        return self.id == other.id and self.resolved == other.resolved

    def __hash__(self) -> int:
        return hash((self.id, self.resolved))

    def _require_manager(self) -> "ExtensionManager":
        if self.manager is None:
            raise RuntimeError(f"Package '{self.id}' is not bound to an extension manager")
        return self.manager

    async def install(self, force: bool = False, **kwargs: Any) -> "Extension":
        """Install this package through its manager."""
        return await self._require_manager().install_package(self, force, **kwargs)

    async def all_versions(self) -> list[str]:
        """List every published version of this package (unfiltered)."""
        return await self._require_manager().get_package_versions(self.name)

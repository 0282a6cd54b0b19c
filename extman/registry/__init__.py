"""
extman Registry - Package specifier resolution and metadata retrieval.

This module handles:
- Package specifier parsing
- npm-compatible registry access
- Local, tarball and git package sources
"""

__all__ = []

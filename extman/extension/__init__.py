"""
extman Extension System - Extension lifecycle management.

This module handles:
- Package and extension models
- Installation through an external installer tool
- Installed-extension enumeration
- Start script launch
- Cross-process and in-process locking
"""

__all__ = []

"""
pm - extman command-line interface.

Pacman-style front end for installing, querying, removing and starting
extensions.
"""

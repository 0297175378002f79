"""Artifactrelay CLI — Typer-based command-line interface.

Provides the ``artifactrelay`` command with subcommands for publishing a
build's artifacts, copying them into another build, validating project
names, inspecting fingerprints and renaming jobs.

All output uses Rich for formatted terminal display.
"""

"""Fragments CLI: Typer-based command-line interface.

Provides the ``fragments`` command with ``apply`` and
``environment create``.  Output uses Rich.
"""

"""
DevContainer Runner - devcontainer.toml driven container management

This package reads a single declarative devcontainer.toml and translates
build, up, exec, stop, down and read subcommands into docker invocations.
"""

__version__ = "1.0.0"

from .cli import cli

__all__ = ["cli"]

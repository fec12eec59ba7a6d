# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
xfork: backend API extraction and linkname proxy generation.

Pipeline: parser (load) -> classify -> trim -> proxy -> emit. The CLI
entrypoint is `xfork.cli:main`.
"""

__all__ = ["classify", "config", "emit", "errors", "parser", "pipeline", "proxy", "snapshot", "trim"]

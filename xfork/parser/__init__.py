# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
"""
Go declaration loader.

Parses backend sources into the frozen declaration tree in `xfork.parser.ast`.
Comments are attached to declarations and directive comments are parsed at
load time, so later passes never look at raw comment text.
"""

from .parser import GoTerminatorInserter, load, parse_source, parse_type

__all__ = [
	"GoTerminatorInserter",
	"load",
	"parse_source",
	"parse_type",
]

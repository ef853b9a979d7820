"""Parser for the ``module`` directive of Go go.mod files."""

from __future__ import annotations

import re

# module github.com/foo/bar    |    module "github.com/foo/bar" // comment
_MODULE_RE = re.compile(r'^module\s+"?([^\s"]+)"?\s*(?://.*)?$')

# Block form: module (
_MODULE_BLOCK_START = re.compile(r"^module\s*\($")


def parse_module_name(content: str) -> str | None:
    """Return the module path declared in go.mod *content*, or None."""
    in_module_block = False

    for raw_line in content.splitlines():
        line = raw_line.strip()

        if not line or line.startswith("//"):
            continue

        if in_module_block:
            if line == ")":
                in_module_block = False
                continue
            path = line.split("//", 1)[0].strip().strip('"')
            if path:
                return path
            continue

        if _MODULE_BLOCK_START.match(line):
            in_module_block = True
            continue

        m = _MODULE_RE.match(line)
        if m:
            return m.group(1)

    return None

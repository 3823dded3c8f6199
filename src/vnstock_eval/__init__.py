"""Vietnamese stock evaluation MCP server."""

import os


def get_server_version() -> str:
    """Get version with fallback for dev mode."""
    if version := os.environ.get("SERVER_VERSION"):
        return version
    try:
        from importlib.metadata import version as pkg_version

        return pkg_version("vnstock-eval-mcp")
    except Exception:
        return "dev"


SERVER_VERSION = get_server_version()
# Bump when output schema changes materially (new fields, renamed fields, structure changes)
# v1: Short/long-term evaluations with consensus block
# v2: Added coverage_pct and evaluated_weight to evaluations
SCHEMA_VERSION = "2"

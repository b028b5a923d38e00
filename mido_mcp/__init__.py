"""MIDO Macro Economic MCP Server."""

__version__ = "2.0.0"

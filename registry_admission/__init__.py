"""Write-path admission control for an MCP server registry."""

__version__ = "1.0.0"

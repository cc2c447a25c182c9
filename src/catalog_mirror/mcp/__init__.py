"""MCP stdio server exposing the catalog mirror as tools."""

"""MCP stdio server exposing the entity sync as tools."""

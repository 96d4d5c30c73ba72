"""Invocations of the external renderers and documentation tools."""

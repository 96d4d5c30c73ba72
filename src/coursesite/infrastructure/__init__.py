"""Configuration, process execution, packaging and logging support."""

"""Chunking and embedding of stored documentation pages."""

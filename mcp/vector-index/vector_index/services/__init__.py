"""Indexing, embedding and search services."""

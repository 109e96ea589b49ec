"""Artifact lifecycle core: build, publish, fetch and install."""

"""Incremental loader for GitHub repository clone metrics."""

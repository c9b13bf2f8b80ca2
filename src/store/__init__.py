"""Dataset storage and caching layer.

This package registers reference datasets, persists their documents
crash-safely, and orchestrates loading, fetching and staleness refreshes.
"""

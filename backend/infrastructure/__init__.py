"""
Infrastructure helpers: in-memory caching.
"""

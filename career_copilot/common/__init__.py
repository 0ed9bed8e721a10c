"""
Shared infrastructure: configuration, logging, errors, caching, retries.
"""

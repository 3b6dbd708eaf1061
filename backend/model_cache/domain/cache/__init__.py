"""
Cache Domain Module

Value objects and repository interfaces for cache-aside model caching.
"""

"""Service layer: the graph traversal engine and its entry points.

Services may import from domain, config, and plugins.
"""

"""Domain layer: rule contracts, member markers, and type metadata.

This layer depends only on stdlib and graphval.exceptions.
It must never import from services, plugins, or config.
"""

"""Domain layer — schemas, changesets, validations, and queries.

This layer depends only on stdlib.
It must never import from services, infrastructure, commands, or config.
"""

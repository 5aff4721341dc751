"""Infrastructure layer — adapters, engine, compiler, repo.

This layer depends on stdlib, third-party libs (SQLAlchemy, Tenacity,
structlog) and the domain layer. It must never import from services,
commands, or output. The Repo is the bridge between schemas and SQL.
"""

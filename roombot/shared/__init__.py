"""Persistence layer: models, repositories and the database pool."""

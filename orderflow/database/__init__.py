"""
Order persistence: in-memory stubs for development and SQLAlchemy/Redis backends for production.
"""

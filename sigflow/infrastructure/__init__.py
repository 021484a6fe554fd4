"""
Infrastructure layer package.

Adapters implementing domain ports: SQLAlchemy repositories for
workflows and runs, and the simulated node services.
"""

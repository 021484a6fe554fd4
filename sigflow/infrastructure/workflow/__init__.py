"""
Infrastructure adapters for the workflow bounded context.

Each adapter implements a domain port (ABC): the SQLAlchemy
workflow and run stores, and the simulated node services.
"""

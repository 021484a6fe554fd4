"""
Application layer package.

Contains use cases that orchestrate domain logic, plus the run queue
worker. This layer depends on domain ports, never on infrastructure.
"""

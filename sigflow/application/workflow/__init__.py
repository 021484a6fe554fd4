"""
Application layer for the workflow bounded context.

Use cases for workflow management, run submission and run
inspection. No framework or infrastructure imports allowed.
"""

"""
Workflow bounded context.

Component registry, graph model, connection rules, canvas interaction
engine and the execution engine for trading workflows.
"""

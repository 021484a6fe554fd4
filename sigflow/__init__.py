"""
SigFlow: visual trading workflows.

Application package root. A modular monolith using hexagonal
architecture (ports & adapters).

Bounded contexts:
    - workflow: Component registry, graph editing, canvas interaction,
      workflow execution and run tracking.

Layers:
    - domain: Pure business logic, entities, ports (ABCs), errors.
    - application: Use cases, DTOs, the run queue.
    - infrastructure: Adapters (DB, node services) implementing domain ports.
    - interfaces: FastAPI routers, Pydantic schemas.
    - shared: Cross-cutting concerns (errors, security, logging).
"""

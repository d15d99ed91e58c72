"""
Shared Kernel

Base classes and utilities shared by the catalog, reservation and plan
contexts: entities, value objects, the state machine helper, domain errors,
the unit of work and the in-process message bus.
"""

"""
Closure marshalling.

Components:
- marshaller.py: IteratorConfig -> IteratorConfigMessage (controller side)
- rebuild.py: IteratorConfigMessage -> callable + IteratorScope (engine side)
"""

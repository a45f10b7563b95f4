"""
Core subsystem.

Components:
- messages.py: wire shapes (RequestMessage, ResponseMessage, IteratorConfigMessage)
- ports.py: the PeerChannel protocol the scheduler talks to
- reader.py: TxtReader, one method per engine action
"""

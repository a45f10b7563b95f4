"""
Concrete PeerChannel implementations.

Components:
- process_channel.py: engine in a separate process (default)
- inline_channel.py: engine on the controller's event loop (tests, small files)
"""

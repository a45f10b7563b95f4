"""
Engine subsystem (runs in the isolated context).

Components:
- line_engine.py: LineEngine, one handler per action
- worker.py: process entry point serving requests from a pipe
"""

"""
Command line front end.

Components:
- bootstrap.py: composition root (settings, logging, channel -> TxtReader)
- main.py: argparse entry point (`txt-reader`)
"""

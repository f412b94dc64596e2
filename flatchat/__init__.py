"""
flatchat: a multi-user chat service that keeps all of its state in two flat files.
"""

__version__ = "1.0.0"

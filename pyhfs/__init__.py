"""
Small HTTP file sharing server.

Lists a flat folder, takes uploads and serves downloads with single byte
range support.
"""

__version__ = "0.1.0"

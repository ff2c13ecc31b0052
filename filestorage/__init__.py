"""
File Storage

Backend-agnostic file operations: write, read, list, delete and inspect
files and directories on a local filesystem or an S3-compatible object store
through one contract.
"""

__version__ = "1.0.0"

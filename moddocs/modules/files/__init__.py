"""
Files module.

This module handles files uploaded to a mod and the storage drivers that hold them.
"""

from .models import StoredFile

__all__ = ["StoredFile"]

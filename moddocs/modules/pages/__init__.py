"""
Pages module.

This module handles the markdown page tree of a mod.
"""

from .models import Page

__all__ = ["Page"]

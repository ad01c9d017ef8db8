"""
ModDocs: collaborative documentation workspaces for mods.
"""

__version__ = "0.1.0"

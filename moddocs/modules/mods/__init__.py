"""
Mods module.

This module handles mods, their collaborators and invitations.
"""

from .models import Mod, ModInvitation, ModMember, StorageDriver

__all__ = [
    "Mod",
    "ModInvitation",
    "ModMember",
    "StorageDriver",
]

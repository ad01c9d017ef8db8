"""
Feature modules.

Importing this package registers every model with the declarative base.
"""

from .auth.models import User
from .files.models import StoredFile
from .mods.models import Mod, ModInvitation, ModMember
from .pages.models import Page

__all__ = [
    "User",
    "Mod",
    "ModMember",
    "ModInvitation",
    "Page",
    "StoredFile",
]

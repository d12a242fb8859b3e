"""Services that read and write desktop state."""

from deskspace.desktop.repositories.access import AccessGate
from deskspace.desktop.repositories.desktops import DesktopRepository
from deskspace.desktop.repositories.dock import DockRepository
from deskspace.desktop.repositories.items import TreeStore
from deskspace.desktop.repositories.ordering import OrderingService

__all__ = [
    "AccessGate",
    "DesktopRepository",
    "DockRepository",
    "OrderingService",
    "TreeStore",
]

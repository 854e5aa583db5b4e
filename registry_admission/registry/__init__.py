from .models import PublishMode, ServerRecord
from .publisher import PublishController
from .store import InMemoryRegistryStore, RegistryStore

__all__ = [
    "InMemoryRegistryStore",
    "PublishController",
    "PublishMode",
    "RegistryStore",
    "ServerRecord",
]

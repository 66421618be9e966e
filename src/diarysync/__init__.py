"""diarysync: client-side data access for a journaling app.

Cards, recurring series, counted groups and topic indexes kept in a
document store, with card images in an object store.
"""

from .core.config import Config, get_config
from .core.docstore import DocumentRef, MemoryDocumentStore
from .core.storage import LocalObjectStore
from .core.utils import setup_logging_from_config
from .journal import CardService, SyncConfig

__version__ = "0.1.0"


def open_service(
    config: Config | None = None,
    store=None,
    objects=None,
    configure_logging: bool = False,
) -> CardService:
    """Build a CardService from configuration.

    Defaults to an in-memory document store and a local object store under
    ``paths.image_dir``. With *configure_logging*, loguru sinks are replaced
    according to the ``logging`` section.
    """
    config = config or get_config()
    if configure_logging:
        setup_logging_from_config(config)
    root = DocumentRef(config.sync_root)
    store = store or MemoryDocumentStore()
    objects = objects or LocalObjectStore(config.get("paths.image_dir"))
    return CardService(root, store, objects, SyncConfig.from_config(config))


__all__ = [
    "CardService",
    "Config",
    "DocumentRef",
    "LocalObjectStore",
    "MemoryDocumentStore",
    "SyncConfig",
    "__version__",
    "open_service",
]

"""Startup helpers used by the app lifespan.

Each function constructs exactly one component from the service stack,
so tests and alternative entry points can assemble the same pieces.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from .config import Config, LoggingConfig

if TYPE_CHECKING:
    from .directory import EntryDirectory, UserDirectory
    from .realtime.hub import Broadcaster
    from .service import CatalogService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

def load_config(config_path: str | None = None) -> tuple[Config, str]:
    """Load config from file or fall back to defaults.

    Returns ``(config, resolved_config_path)``. Environment overrides
    (``MEDIA_BASE_URL``, ``SOCKET_CORS_ORIGIN``) are applied either way.
    """
    config_path = config_path or os.environ.get("CATALOG_SVC_CONFIG", "config.yaml")
    if Path(config_path).exists():
        config = Config.from_yaml(config_path)
        logger.info("Loaded config from %s", config_path)
    else:
        config = Config()
        logger.info("Using default config (no file at %s)", config_path)
    config.apply_env()
    return config, config_path


def configure_logging(config: LoggingConfig) -> None:
    """Configure root logging once; later calls only adjust the level."""
    level = getattr(logging, config.level.upper(), logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=config.format)
    root.setLevel(level)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

def configure_auth(config: Config) -> None:
    """Configure the process-global authenticator singleton."""
    from .auth import create_composite_authenticator, set_authenticator

    if config.auth.enabled:
        authenticator = create_composite_authenticator(config.auth)
        set_authenticator(authenticator)
        logger.info("Authentication enabled (methods=%s)", config.auth.method_order)
    else:
        set_authenticator(None, dev_user_id=config.auth.dev_user_id)
        if config.auth.dev_user_id:
            logger.warning(
                "Authentication disabled - all callers act as %s (dev only)",
                config.auth.dev_user_id,
            )
        else:
            logger.warning("Authentication disabled and no dev_user_id set - all callers rejected")


# ---------------------------------------------------------------------------
# Catalog service
# ---------------------------------------------------------------------------

@dataclass
class Components:
    """Everything the routers need, built from one config."""
    service: CatalogService
    broadcaster: Broadcaster
    users: UserDirectory
    entries: EntryDirectory


def build_components(config: Config, *, users=None, entries=None, notifier=None) -> Components:
    """Build stores, directories, broadcaster, and the catalog service.

    ``users``, ``entries`` and ``notifier`` default to the in-memory and
    logging implementations. When the entry directory supports delete
    listeners, the service's cascade hook is registered on it.
    """
    from .catalog import CatalogEntryLinkStore, CatalogShareStore, CatalogStore, ImageUrlResolver
    from .directory import InMemoryEntryDirectory, InMemoryUserDirectory, LoggingNotifier
    from .realtime.hub import Broadcaster
    from .service import CatalogService

    users = users if users is not None else InMemoryUserDirectory()
    entries = entries if entries is not None else InMemoryEntryDirectory()

    catalogs = CatalogStore()
    shares = CatalogShareStore()
    links = CatalogEntryLinkStore(entries=entries, users=users)

    service = CatalogService(
        catalogs=catalogs,
        links=links,
        shares=shares,
        users=users,
        entries=entries,
        notifier=notifier or LoggingNotifier(),
        broadcaster=Broadcaster(),
        resolve_image=ImageUrlResolver(base_url=config.media.base_url),
    )

    add_listener = getattr(entries, "add_delete_listener", None)
    if add_listener is not None:
        add_listener(service.on_entry_deleted)
        logger.info("Entry deletion cascade registered")

    return Components(
        service=service,
        broadcaster=service.broadcaster,
        users=users,
        entries=entries,
    )


# ---------------------------------------------------------------------------
# Real-time hub
# ---------------------------------------------------------------------------

def initialize_realtime(config: Config, components: Components) -> None:
    """Construct the broadcast hub (once) if real-time is enabled."""
    from .auth import authenticate_socket

    if not config.realtime.enabled:
        logger.info("Real-time sockets disabled; broadcasts will be skipped")
        return

    components.broadcaster.initialize(
        components.service.resolver,
        authenticate_socket,
        send_queue_size=config.realtime.send_queue_size,
    )

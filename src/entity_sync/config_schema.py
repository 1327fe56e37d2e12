"""Configuration schema for entity_sync.

Pydantic models for the merged YAML config: shared WordPress defaults,
named sites, sync options and logging.

Usage:
    from entity_sync.config_loader import load_hierarchical_config
    from entity_sync.config_schema import build_config

    unified = build_config(load_hierarchical_config())
    unified.sites["main"].url
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class WordPressDefaults(BaseModel):
    """Settings shared by every site unless the site overrides them.

    Credentials are optional here: WP_USERNAME / WP_PASSWORD env vars
    or per-site entries may supply them instead.
    """

    username: str | None = Field(
        default=None, description="Default XML-RPC username"
    )
    password: str | None = Field(
        default=None, description="Default application password"
    )
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    page_size: int = Field(
        default=100,
        ge=1,
        le=500,
        description="Items requested per XML-RPC listing call (1-500)",
    )
    download_timeout: float = Field(
        default=30.0,
        gt=0,
        le=600,
        description="Timeout in seconds for media downloads",
    )

    model_config = {"frozen": True}


class SiteSection(BaseModel):
    """One site of the network.

    Attributes:
        url: Site base URL; the XML-RPC endpoint is ``<url>/xmlrpc.php``.
        blog_id: Blog id sent with each XML-RPC call. WordPress ignores it
            and picks the site by endpoint URL, so every site needs its
            own url.
        username: Overrides the shared username.
        password: Overrides the shared password.
        insecure: Overrides the shared SSL setting.
    """

    url: str
    blog_id: int = Field(default=1, ge=1)
    username: str | None = None
    password: str | None = None
    insecure: bool | None = None

    model_config = {"frozen": True}


class SyncSection(BaseModel):
    """What gets synced and how new entities are written."""

    post_type: str = Field(
        default="musician", min_length=1, description="Post type to sync"
    )
    post_status: str = Field(
        default="publish", description="Status of created posts"
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level configuration.

    ``UnifiedConfig()`` is valid on its own; it just has no sites.
    """

    wordpress: WordPressDefaults = Field(
        default_factory=WordPressDefaults
    )
    sites: dict[str, SiteSection] = Field(default_factory=dict)
    sync: SyncSection = Field(default_factory=SyncSection)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Build a ``UnifiedConfig`` from the dict returned by
    ``load_hierarchical_config()``.

    Site names are normalised to strings so that ``sites: {1: ...}`` in
    YAML can be addressed as ``--source-site 1``.
    """
    if not raw_data:
        return UnifiedConfig()

    data = dict(raw_data)
    sites = data.get("sites")
    if isinstance(sites, dict):
        data["sites"] = {str(name): site for name, site in sites.items()}

    return UnifiedConfig(**data)

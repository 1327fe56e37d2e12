"""Site connection settings for the sync engine.

Resolves a named site from the YAML config into a validated ``SiteConfig``.

Precedence for credentials (highest to lowest):
    site entry > environment variables (.env included) > ``wordpress`` defaults

Environment variables:
    WP_USERNAME: Default XML-RPC username
    WP_PASSWORD: Default application password
    WP_INSECURE: Skip SSL verification (optional, default: false)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

from pydantic import ValidationError

from .config_loader import load_hierarchical_config
from .config_schema import UnifiedConfig, build_config
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass
class SiteConfig:
    name: str
    url: str
    username: str
    password: str
    blog_id: int = 1
    insecure: bool = False
    page_size: int = 100
    download_timeout: float = 30.0

    @property
    def store_id(self) -> str:
        """Identity of the underlying store, independent of the config name.

        XML-RPC picks the site by endpoint URL and ignores the blog id,
        so the URL alone identifies the store.
        """
        return self.url.lower().rstrip("/")


def _get_bool_env(key: str) -> bool | None:
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def validate_site_config(site: SiteConfig) -> None:
    """Validate a site's settings in place.

    Raises:
        ConfigurationError: If the URL is malformed or credentials are empty.
    """
    site.url = site.url.strip()

    if not site.url.startswith(("http://", "https://")):
        raise ConfigurationError(
            f"Invalid URL '{site.url}' for site '{site.name}': "
            "must start with http:// or https://"
        )

    if not urlparse(site.url).hostname:
        raise ConfigurationError(
            f"Invalid URL '{site.url}' for site '{site.name}': "
            "URL must include a hostname"
        )

    site.url = site.url.removesuffix("/")

    if not site.username.strip():
        raise ConfigurationError(
            f"No username for site '{site.name}'. Set WP_USERNAME or "
            "add 'username' to the site or 'wordpress' section."
        )

    if not site.password.strip():
        raise ConfigurationError(
            f"No password for site '{site.name}'. Set WP_PASSWORD or "
            "add 'password' to the site or 'wordpress' section."
        )

    if site.insecure:
        logger.warning(
            "SSL verification disabled for site '%s'. Use only for development.",
            site.name,
        )


def load_unified_config(config_path: Path | None = None) -> UnifiedConfig:
    """Load YAML config files and validate them against the schema.

    Raises:
        ConfigurationError: If a file is missing or fails validation.
    """
    try:
        return build_config(load_hierarchical_config(config_path))
    except FileNotFoundError as exc:
        raise ConfigurationError(str(exc)) from exc
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc


def load_site_config(name: str | None, unified: UnifiedConfig) -> SiteConfig:
    """Build a validated ``SiteConfig`` for the site called *name*.

    Raises:
        ConfigurationError: If *name* is empty, unknown, or invalid.
    """
    if not name or not str(name).strip():
        raise ConfigurationError("Site name is required.")
    name = str(name).strip()

    section = unified.sites.get(name)
    if section is None:
        available = ", ".join(sorted(unified.sites)) or "none configured"
        raise ConfigurationError(
            f"Unknown site '{name}'. Available sites: {available}."
        )

    defaults = unified.wordpress

    if section.insecure is not None:
        insecure = section.insecure
    else:
        env_insecure = _get_bool_env("WP_INSECURE")
        insecure = (
            env_insecure if env_insecure is not None else defaults.insecure
        )

    site = SiteConfig(
        name=name,
        url=section.url,
        username=(
            section.username
            or os.getenv("WP_USERNAME")
            or defaults.username
            or ""
        ).strip(),
        password=(
            section.password
            or os.getenv("WP_PASSWORD")
            or defaults.password
            or ""
        ).strip(),
        blog_id=section.blog_id,
        insecure=insecure,
        page_size=defaults.page_size,
        download_timeout=defaults.download_timeout,
    )

    validate_site_config(site)
    return site


def resolve_site_pair(
    source: str | None,
    target: str | None,
    unified: UnifiedConfig,
) -> tuple[SiteConfig, SiteConfig]:
    """Resolve and validate the source and target sites of a batch.

    Raises:
        ConfigurationError: If either site is missing or invalid, or if
            both refer to the same store.
    """
    if not source:
        raise ConfigurationError(
            "Invalid source site. Use --source-site=<name> with a configured site."
        )
    if not target:
        raise ConfigurationError(
            "Please provide a target site using --copy-site=<name>."
        )

    source_site = load_site_config(source, unified)
    target_site = load_site_config(target, unified)

    if (
        source_site.name == target_site.name
        or source_site.store_id == target_site.store_id
    ):
        raise ConfigurationError(
            "Source site and copy site cannot be the same."
        )

    return source_site, target_site

"""Runtime configuration — env-driven via pydantic-settings.

All settings can be overridden through ``CDNFORGE_*`` environment variables
or a ``.env`` file in the working directory.

Examples
--------
Override via environment::

    export CDNFORGE_PUBLIC_DIR=/srv/app/public
    export CDNFORGE_DOMAIN=d1234.cloudfront.net
    export CDNFORGE_PRODUCTION=true

Or via .env file::

    CDNFORGE_BUCKET=my-assets
    CDNFORGE_PROTOCOL=relative
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from cdnforge.core.errors import ConfigurationError

# Options that must be set before the publishing pipeline may run.
PRODUCTION_REQUIRED_OPTIONS: list[str] = [
    "public_dir",
    "views_dir",
    "domain",
    "bucket",
    "key",
    "secret",
]

DEVELOPMENT_REQUIRED_OPTIONS: list[str] = ["public_dir"]

# Rendering tags needs no storage credentials.
RENDER_REQUIRED_OPTIONS: list[str] = ["public_dir", "domain"]


class CdnConfig(BaseSettings):
    """Options for scanning, publishing and rendering assets."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CDNFORGE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Source trees
    public_dir: Path | None = None
    views_dir: Path | None = None
    template_extensions: tuple[str, ...] = (
        ".jade",
        ".ejs",
        ".pug",
        ".html",
        ".jinja",
        ".jinja2",
        ".j2",
    )
    marker_name: str = "CDN"

    # CDN / object storage
    domain: str = ""
    bucket: str = ""
    endpoint: str | None = None
    region: str | None = None
    key: str = ""
    secret: str = ""

    # Local application origin (stylesheets can be fetched from it)
    hostname: str = "localhost"
    port: int = 1337
    protocol: Literal["http", "https", "relative"] = "https"
    stylesheet_source: Literal["disk", "server"] = "disk"

    # Mode
    production: bool = False

    # Pipeline behaviour
    manifest_path: Path | None = Path(".cdnforge/manifest.json")
    max_concurrency: int = 8
    upload_max_attempts: int = 5
    upload_initial_wait_seconds: float = 0.5
    upload_max_wait_seconds: float = 10.0

    # External optimizers
    optipng_binary: str = "optipng"
    jpegtran_binary: str = "jpegtran"

    # Observability
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Derived values
    # ------------------------------------------------------------------

    @property
    def base_url(self) -> str:
        """CDN prefix used in production tags (no trailing slash)."""
        domain = self.domain.rstrip("/")
        if self.protocol == "relative":
            return f"//{domain}"
        return f"{self.protocol}://{domain}"

    @property
    def origin_url(self) -> str:
        """Origin of the running application, for server-side stylesheet fetches."""
        scheme = "https" if self.protocol == "https" else "http"
        return f"{scheme}://{self.hostname}:{self.port}"

    def require_public_dir(self) -> Path:
        if self.public_dir is None:
            raise ConfigurationError('missing option "public_dir"')
        return self.public_dir

    def validate_required(self, *, rendering: bool = False) -> None:
        """Raise ``ConfigurationError`` naming the first missing option.

        With *rendering*, only the options tag rendering reads are checked.
        """
        if not self.production:
            required = DEVELOPMENT_REQUIRED_OPTIONS
        elif rendering:
            required = RENDER_REQUIRED_OPTIONS
        else:
            required = PRODUCTION_REQUIRED_OPTIONS
        for name in required:
            value = getattr(self, name)
            if value is None or value == "":
                raise ConfigurationError(f'missing option "{name}"')


# Module-level singleton: import as `from cdnforge.config import config`
config = CdnConfig()

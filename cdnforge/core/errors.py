"""Error taxonomy for the publishing pipeline.

Every fatal error derives from ``CdnError`` and embeds the identity of the
asset (or template) it concerns in its message, so a single descriptive line
is enough to locate the problem when the run aborts.

Hierarchy
---------
- ``ConfigurationError``  : bad options, bundles, template markers
- ``TransformError``      : the source asset itself is broken
- ``FreshnessCheckError`` : remote metadata lookup failed in transport
- ``StorageTransportError``: raised by storage backends, retried on upload

Publish failures after retries are deliberately *not* represented here: they
are reported as failed outcomes and the run continues.
"""

from __future__ import annotations


class CdnError(RuntimeError):
    """Base class for all fatal cdnforge errors."""


# ---------------------------------------------------------------------------
# Configuration errors
# ---------------------------------------------------------------------------


class ConfigurationError(CdnError):
    """Raised for invalid options or asset references. Aborts the run."""


class MismatchedBundleError(ConfigurationError):
    """Raised when the members of a bundle do not share one MIME type."""

    def __init__(self, paths: tuple[str, ...], expected: str, found: str, member: str) -> None:
        self.paths = paths
        self.expected = expected
        self.found = found
        self.member = member
        super().__init__(
            f"mismatched bundle {list(paths)!r}: '{member}' is {found}, expected {expected}"
        )


class MissingAssetError(ConfigurationError):
    """Raised when a bundle member cannot be stat'ed."""


class UnknownAssetTypeError(ConfigurationError):
    """Raised by the tag renderer for a MIME type it cannot embed."""


class UnsupportedAssetError(ConfigurationError):
    """Raised when no transform exists for an asset's MIME type."""


class TemplateParseError(ConfigurationError):
    """Raised when a template marker's argument list is malformed.

    Parameters
    ----------
    message:
        What went wrong.
    source:
        The marker text (or template path) being parsed.
    position:
        Character offset inside *source* where parsing failed.
    """

    def __init__(self, message: str, *, source: str = "", position: int | None = None) -> None:
        self.message = message
        self.source = source
        self.position = position
        where = f" at offset {position}" if position is not None else ""
        super().__init__(f"{message}{where} in {source!r}" if source else message)


# ---------------------------------------------------------------------------
# Transform errors
# ---------------------------------------------------------------------------


class TransformError(CdnError):
    """Raised when an asset cannot be turned into publishable bytes."""


class AssetReadError(TransformError):
    """Raised when an asset file (or origin URL) cannot be read."""


class ScriptSyntaxError(TransformError):
    """Raised when the script minifier rejects its input.

    ``line`` and ``column`` locate the offending token when the parser
    reported a position.
    """

    def __init__(
        self,
        artifact_name: str,
        detail: str,
        *,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        self.artifact_name = artifact_name
        self.detail = detail
        self.line = line
        self.column = column
        super().__init__(f"syntax error in script '{artifact_name}': {detail}")


class ToolError(TransformError):
    """Raised when an external optimizer exits non-zero."""

    def __init__(self, tool: str, path: str, returncode: int, stderr: str = "") -> None:
        self.tool = tool
        self.path = path
        self.returncode = returncode
        self.stderr = stderr
        message = f"{tool} exited with code {returncode} for '{path}'"
        if stderr:
            message += f": {stderr.strip()}"
        super().__init__(message)


# ---------------------------------------------------------------------------
# Remote storage
# ---------------------------------------------------------------------------


class StorageTransportError(CdnError):
    """Raised by storage backends when the remote cannot be reached."""


class FreshnessCheckError(CdnError):
    """Raised when the metadata lookup for an artifact fails in transport."""

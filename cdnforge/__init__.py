"""cdnforge: publish template-referenced static assets to a CDN.

Scans view templates for ``CDN(...)`` markers, bundles and transforms the
referenced scripts, stylesheets, images and fonts, uploads them gzipped with
long-lived cache headers, and renders cache-busted tags at request time.
"""

__version__ = "0.1.0"

from cdnforge.core.orchestrator import Orchestrator
from cdnforge.render.helper import make_view_helper

__all__ = ["Orchestrator", "make_view_helper", "__version__"]

"""Render-time helpers: tag rendering and the template view helper."""

from cdnforge.render.helper import make_view_helper
from cdnforge.render.tags import create_tag, render_attributes, render_tag

__all__ = ["create_tag", "make_view_helper", "render_attributes", "render_tag"]

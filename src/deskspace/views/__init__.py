"""Visitor-facing projections of a desktop."""

from deskspace.views.projections import (
    DesktopProjection,
    PageProjection,
    PresentProjection,
    Viewer,
    project_desktop,
    project_page,
    project_present,
)
from deskspace.views.slideshow import EndBehavior, Slideshow, SlideshowState

__all__ = [
    "DesktopProjection",
    "EndBehavior",
    "PageProjection",
    "PresentProjection",
    "Slideshow",
    "SlideshowState",
    "Viewer",
    "project_desktop",
    "project_page",
    "project_present",
]

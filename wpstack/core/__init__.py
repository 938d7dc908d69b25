"""
Core wpstack functionality.

Exports the site model, registry, renderer, manifest generator and
change tracker.
"""

from wpstack.core.site import Site, normalize_domain
from wpstack.core.render import render, render_bytes
from wpstack.core.registry import SiteRegistry
from wpstack.core.manifest import ManifestGenerator
from wpstack.core.tracker import ChangeTracker, TrackerState

__all__ = [
    "Site",
    "normalize_domain",
    "render",
    "render_bytes",
    "SiteRegistry",
    "ManifestGenerator",
    "ChangeTracker",
    "TrackerState",
]

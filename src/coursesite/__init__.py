"""coursesite - incremental build step for a course website.

Renders lecture decks, compiles the syllabus and packages homework handouts
with their generated documentation, rebuilding only what is out of date.
"""

from coursesite.__version__ import __version__
from coursesite.core.build_unit import BuildUnit, UnitKind
from coursesite.core.site_builder import SiteBuildResult, build_site
from coursesite.core.staleness import is_stale

__all__ = [
    "__version__",
    "BuildUnit",
    "SiteBuildResult",
    "UnitKind",
    "build_site",
    "is_stale",
]

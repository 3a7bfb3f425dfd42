"""Routers package."""

from . import (
    health,
    skus,
    analytics,
    billing,
    guide,
)

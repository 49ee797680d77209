# reconciler/routers/__init__.py

from reconciler.routers import health
from reconciler.routers import reconcile

__all__ = ["health", "reconcile"]

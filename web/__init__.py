"""Web front-end for newtab.

Serves the link list at / and the form/query endpoints that edit it.
"""

from .router import STATIC_DIR, router

__all__ = ["router", "STATIC_DIR"]

"""
utils/allocation_metrics.py

This wrapper module re-exports all public symbols from the top-level
``allocation_metrics`` module.  It allows client code to import the
allocation engine from the ``utils`` namespace (e.g. ``from
utils.allocation_metrics import allocate``) without breaking existing
imports that refer to ``allocation_metrics`` directly.  The underlying
module's ``__all__`` determines which names are re-exported.
"""

from allocation_metrics import *  # noqa: F401,F403  re-export everything defined in __all__

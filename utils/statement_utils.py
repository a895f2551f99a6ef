"""
utils/statement_utils.py

This wrapper module re-exports all public symbols from the top-level
``statement_utils`` module.  It allows client code to import the statement
readers and normaliser from the ``utils`` namespace (e.g. ``from
utils.statement_utils import parse_broker_statement``) without breaking
existing imports that refer to ``statement_utils`` directly.  The
underlying module's ``__all__`` determines which names are re-exported.
"""

from statement_utils import *  # noqa: F401,F403  re-export everything defined in __all__

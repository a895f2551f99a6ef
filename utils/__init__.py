"""
Utilities package for the SIP rebalancer.

This package provides a namespace for helper modules used throughout the
project: shared logging and audit (``log_utils``), numeric cleaning
(``number_utils``), settings loading (``config_utils``) and re-export
wrappers for the allocation engine and the statement normaliser.
"""

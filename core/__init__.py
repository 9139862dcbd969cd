"""Core module - backend-neutral models, configuration and observability.

This module contains the farm entity models, write request structs, client
settings, logging and metrics. It is intentionally backend-agnostic.

Backend-specific logic (REST paths, column names, payload shapes) belongs in /connectors/.
"""

__version__ = "1.0.0"

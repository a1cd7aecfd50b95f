"""
Prism Central category & security-policy configurator.

This package provides:
- Prism Central v3 API client (single calls, paginated listing, task polling)
- YAML configuration loading
- Upsert of category keys / values from configuration
- One network security rule per configured category value
"""

__version__ = "1.2.0"

HISTORY = (
    ("1.0.0", "Category keys and values from a YAML mapping"),
    ("1.1.0", "Network security rule per category value"),
    ("1.2.0", "Paginated listing of existing objects, task polling, TLS 1.2 pinning"),
)

"""
Statuspage Gating: resource health publisher.

Polls Statuspage-style APIs on a fixed interval and republishes the
latest per-source snapshot of component health for an admission
(gating) engine to consult.
"""

__version__ = "1.0.0"

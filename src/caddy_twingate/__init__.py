"""
Caddy → Twingate resource synchronization.

Discovers reverse_proxy routes in a Caddy ``http`` app and keeps a Twingate
Remote Network's Resources in step with them.

Architecture:
    Caddy config → RouteDiscoverer → ResourceMapping[] → ResourceReconciler → Twingate
"""

__version__ = "0.3.0"

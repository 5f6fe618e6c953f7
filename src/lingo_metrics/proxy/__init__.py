"""Server-side endpoints that hold the Mixpanel and Dune secrets."""

from lingo_metrics.proxy.app import create_app, is_authorized

__all__ = ["create_app", "is_authorized"]

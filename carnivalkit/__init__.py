"""Manifests, delta updates, verification and launching for IndieGala game installs."""

__version__ = "0.1.0"

__all__ = ["delta", "launch", "logger", "macapp", "manifest", "progress", "verify"]
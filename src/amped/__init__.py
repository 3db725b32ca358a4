"""
Amped - wellness app onboarding hosts.

The onboarding core lives in the `onboarding` package; this package wires it
to settings, logging, a terminal CLI and a FastAPI web host.
"""

__version__ = "1.0.0"

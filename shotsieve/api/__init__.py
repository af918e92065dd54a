"""
API package for ShotSieve.

Provides the scan engine (ScanOrchestrator) and the Flask routes that
expose its control surface.
"""

from __future__ import annotations

from .orchestrator import ScanOrchestrator, ScannerCallbacks
from .routes import api, EXTENSION_KEY

__all__ = ['api', 'EXTENSION_KEY', 'ScanOrchestrator', 'ScannerCallbacks']

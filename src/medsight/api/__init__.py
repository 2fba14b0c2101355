"""
MedSight API Layer

FastAPI interface.
"""

from medsight.api.routes import create_app, router

__all__ = ["create_app", "router"]

"""
MedSight

Evidence synthesis with patient-safety veto gating.
"""

__version__ = "0.1.0"

from medsight.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__"]

"""Domain helpers shared across layer boundaries."""

from .timeline import domain_build_stage_event

__all__ = ["domain_build_stage_event"]

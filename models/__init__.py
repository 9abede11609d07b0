"""Result and state containers shared by the service layer."""

from .mapping_outcome import MappingOutcome

__all__ = ["MappingOutcome"]

"""Strategy implementations for the DCA ladder bot."""

from .dca_ladder import describe as dca_ladder_describe

__all__ = ["dca_ladder_describe"]

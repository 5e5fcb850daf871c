"""Default action dispatcher bound to an instrumentation-launched app."""

from __future__ import annotations


class InstrumentsActions:
    """Binding point for gestures sent through the instrumentation tool.

    Constructed with no arguments; the embedding driver supplies the gesture
    and query operations. One instance is created per attachment.
    """

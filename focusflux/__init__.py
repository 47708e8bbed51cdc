"""FocusFlux client-side reminder scheduling and notification delivery."""

__version__ = "0.1.0"

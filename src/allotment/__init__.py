"""allotment: weighted-fair admission control for a fragile downstream service."""

__version__ = "0.1.0"

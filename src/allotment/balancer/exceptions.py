"""Exception hierarchy for the allotment balancer.

All balancer-specific exceptions inherit from AllotmentError, enabling
callers to catch broad (AllotmentError) or narrow (e.g., ProcessingError).
"""

from __future__ import annotations


class AllotmentError(Exception):
    """Base exception for all balancer-related errors."""


class ProcessingError(AllotmentError):
    """Raised by a downstream service when a single work item fails.

    Non-fatal: the dispatching consumer logs it, the token is freed as
    usual and the job is not completed because of it.
    """


class ConfigurationError(AllotmentError, ValueError):
    """Raised when a balancer is constructed with malformed parameters.

    Examples: negative ceiling, registration queue size below one.
    """


class BalancerClosedError(AllotmentError):
    """Raised when registering a customer on a balancer that was stopped."""

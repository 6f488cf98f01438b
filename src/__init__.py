"""
Order Validation Rules - Source Package

This package contains the shared order validation rule set and the two Lambda
hosts that consume it: the orders web API and the Dataverse plugin webhook.
"""

__version__ = "1.0.0"

# Package metadata
__all__ = [
    "__version__",
]

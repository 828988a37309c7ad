"""
===============================================================================
XNAV - Error Types
===============================================================================
Exceptions raised by the navigation core and its catalog loader.

Each error also derives from the built-in type a caller would naturally
catch for that failure, so ``except ValueError`` keeps working around
catalog parsing and ``except np.linalg.LinAlgError`` keeps working around
the filter update.
===============================================================================
"""

import numpy as np


class XnavError(Exception):
    """Base class for all pulsar navigation errors."""


class ParseError(XnavError, ValueError):
    """A pulsar parameter file contains a value that cannot be parsed."""


class InvalidDimensions(XnavError, ValueError):
    """Array lengths or shapes handed to the filter are inconsistent."""


class SingularCovariance(XnavError, np.linalg.LinAlgError):
    """
    The innovation covariance S = H P H^T + R could not be inverted.

    Raised by the measurement update before the state or covariance is
    touched, so the filter is left exactly as it was.
    """

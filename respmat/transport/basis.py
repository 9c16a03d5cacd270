"""Discrete orthonormal polynomial bases used to expand boundary fluxes."""

from __future__ import annotations
from typing import Optional

import numpy as np

from ..errors import ConfigurationError


def discrete_legendre(number_points: int, max_order: Optional[int] = None) -> np.ndarray:
    """
    Discrete Legendre (Gram) polynomials on equally spaced points.

    Returns a matrix of shape [number_points, max_order + 1]; column k is the
    degree-k polynomial sampled at the points, orthonormal under the plain
    discrete inner product, with a positive leading coefficient.  Column k has
    parity (-1)^k under reversal of the points.
    """
    if number_points < 1:
        raise ConfigurationError("A basis needs at least one point")
    if max_order is None:
        max_order = number_points - 1
    if max_order < 0 or max_order > number_points - 1:
        raise ConfigurationError(
            f"Order {max_order} cannot be represented on {number_points} points"
        )
    x = np.linspace(-1.0, 1.0, number_points) if number_points > 1 else np.zeros(1)
    vandermonde = np.vander(x, max_order + 1, increasing=True)
    q, r = np.linalg.qr(vandermonde)
    return q * np.sign(np.diag(r))

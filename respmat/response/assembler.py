"""
Response matrix assembly and the global eigenvalue estimate.

Only left-side incidence is ever solved.  For a cell invariant under
90 degree rotations, the block coupling incident side `in` to outgoing side
`out` is the left-incidence block coef[SYMMETRY_TABLE[out][in]], where coef
is ordered (left, right, bottom, top):

    out \\ in   left  right  bottom  top
    left         0      1      3      2
    right        1      0      2      3
    bottom       2      3      0      1
    top          3      2      1      0

i.e. 0 = reflection, 1 = transmission to the opposite side, 2 = the side
reached by rotating +90 degrees (left -> bottom), 3 = the side reached by
rotating -90 degrees (left -> top).
"""

from __future__ import annotations
import logging

import numpy as np
from scipy import sparse
from scipy.sparse.linalg import eigs, ArpackNoConvergence

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

SYMMETRY_TABLE = (
    (0, 1, 3, 2),
    (1, 0, 2, 3),
    (2, 3, 0, 1),
    (3, 2, 1, 0),
)


def build_response_matrix(coef) -> np.ndarray:
    """R[out, in] blocks from the four left-incidence blocks, shape [4m, 4m]."""
    coef = np.asarray(coef, dtype=np.float64)
    m = coef.shape[1]
    R = np.zeros((4 * m, 4 * m))
    for out in range(4):
        for inc in range(4):
            R[out * m:(out + 1) * m, inc * m:(inc + 1) * m] = coef[SYMMETRY_TABLE[out][inc]]
    return R


def replicate(R, number_elements: int) -> sparse.csr_matrix:
    """Block-diagonal global response operator kron(I, R)."""
    return sparse.kron(sparse.identity(number_elements, format="csr"),
                       sparse.csr_matrix(R), format="csr")


def top_k_eigenvalues(matrix, k: int, which: str = "LR") -> np.ndarray:
    """
    The k eigenvalues of largest real part, sorted by decreasing real part.

    Uses ARPACK when possible; small matrices (k >= n - 1) are handled densely.
    """
    n = matrix.shape[0]
    k = min(k, n)
    if which != "LR":
        raise ConfigurationError(f"Only which='LR' is supported, got {which}")
    if k < n - 1:
        try:
            vals = eigs(sparse.csr_matrix(matrix), k=k, which=which, return_eigenvectors=False)
        except ArpackNoConvergence as exc:
            logger.warning(f"ARPACK did not converge ({exc}); falling back to a dense solve")
            vals = None
        if vals is not None:
            return vals[np.argsort(-vals.real)]
    dense = matrix.toarray() if sparse.issparse(matrix) else np.asarray(matrix)
    vals = np.linalg.eigvals(dense)
    return vals[np.argsort(-vals.real)][:k]


class ResponseMatrixAssembler:
    """
    Args:
        connectivity:    sparse M from build_connectivity
        number_elements: elements in the lattice
    """

    def __init__(self, connectivity, number_elements: int = 1):
        self.connectivity = sparse.csr_matrix(connectivity)
        self.number_elements = number_elements

    def assemble(self, coef) -> np.ndarray:
        R = build_response_matrix(coef)
        expected = self.connectivity.shape[0] // self.number_elements
        if R.shape[0] != expected:
            raise ConfigurationError(
                f"Response matrix has size {R.shape[0]} but the connectivity expects {expected} per element"
            )
        return R

    def global_operator(self, R) -> sparse.csr_matrix:
        return self.connectivity @ replicate(R, self.number_elements)

    def eigenvalues(self, R, k: int = 4) -> np.ndarray:
        vals = top_k_eigenvalues(self.global_operator(R), k, which="LR")
        logger.info(f"Dominant eigenvalue of M*R: {vals[0].real:.10f}")
        return vals

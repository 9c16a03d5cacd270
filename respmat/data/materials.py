"""
Multigroup macroscopic cross sections.

The Materials container holds, per material m and group g:
  sigma_t[m, g]          total cross section
  sigma_s[m, g, g']      scatter from group g' INTO group g
  nu_sigma_f[m, g]       nu times fission cross section
  chi[m, g]              fission spectrum
  diff_coef[m, g]        diffusion coefficient (defaults to 1 / (3 sigma_t))

Groups are ordered fast -> thermal.  Published 7-group C5G7 data are included
so that assembly-sized response problems can be built without external files.
"""

from __future__ import annotations
from typing import Optional, Sequence

import numpy as np

from ..errors import ConfigurationError


# ──────────────────────────────────────────────────────────────────────────────
# Published C5G7 7-group cross sections – Table 2, NEA/NSC/DOC(2003)16
# Units: cm^-1 (macroscopic). Values exactly as tabulated.
# ──────────────────────────────────────────────────────────────────────────────
C5G7_XS: dict = {
    "uo2": {
        "sigma_t": [1.77949e-1, 3.29805e-1, 4.80388e-1, 5.54367e-1, 3.11801e-1, 3.95168e-1, 5.64406e-1],
        "sigma_a": [8.02480e-3, 3.71740e-3, 2.67690e-2, 9.62360e-2, 3.00200e-2, 1.11260e-1, 2.82780e-1],
        "sigma_s": [  # row g (from) -> column g' (to)
            [1.27537e-1, 4.23780e-2, 9.43740e-6, 5.51630e-9, 0.0,        0.0,        0.0       ],
            [0.0,        3.24456e-1, 1.63140e-3, 3.14270e-9, 0.0,        0.0,        0.0       ],
            [0.0,        0.0,        4.50940e-1, 2.67920e-3, 0.0,        0.0,        0.0       ],
            [0.0,        0.0,        0.0,        4.52565e-1, 5.56640e-3, 0.0,        0.0       ],
            [0.0,        0.0,        0.0,        1.25250e-4, 2.71401e-1, 1.02550e-2, 1.00210e-8],
            [0.0,        0.0,        0.0,        0.0,        1.29680e-3, 2.65802e-1, 1.68090e-2],
            [0.0,        0.0,        0.0,        0.0,        0.0,        8.54580e-3, 2.73080e-1],
        ],
        "nu_sigma_f": [2.005998e-2, 2.027303e-3, 1.570599e-2, 4.518301e-2, 4.334208e-2, 2.020901e-1, 5.257105e-1],
        "chi":        [5.87910e-1, 4.11760e-1, 3.39060e-4, 1.17610e-7, 0.0, 0.0, 0.0],
    },
    "mox4.3": {
        "sigma_t": [1.78731e-1, 3.30849e-1, 4.83772e-1, 5.66922e-1, 4.26227e-1, 6.78997e-1, 6.82852e-1],
        "sigma_a": [8.43390e-3, 3.75770e-3, 2.79700e-2, 1.04210e-1, 1.39940e-1, 4.09180e-1, 4.09350e-1],
        "sigma_s": [
            [1.28876e-1, 4.14130e-2, 8.22900e-6, 5.04050e-9, 0.0,        0.0,        0.0       ],
            [0.0,        3.25452e-1, 1.63950e-3, 1.59820e-9, 0.0,        0.0,        0.0       ],
            [0.0,        0.0,        4.53188e-1, 2.61420e-3, 0.0,        0.0,        0.0       ],
            [0.0,        0.0,        0.0,        4.57173e-1, 5.53940e-3, 0.0,        0.0       ],
            [0.0,        0.0,        0.0,        1.60460e-4, 2.76814e-1, 9.31270e-3, 9.16560e-9],
            [0.0,        0.0,        0.0,        0.0,        2.00510e-3, 2.52962e-1, 1.48500e-2],
            [0.0,        0.0,        0.0,        0.0,        0.0,        8.49480e-3, 2.65007e-1],
        ],
        "nu_sigma_f": [2.175300e-2, 2.535103e-3, 1.626799e-2, 6.547410e-2, 3.072409e-2, 6.666510e-1, 7.139904e-1],
        "chi":        [5.87910e-1, 4.11760e-1, 3.39060e-4, 1.17610e-7, 0.0, 0.0, 0.0],
    },
    "mox7.0": {
        "sigma_t": [1.81323e-1, 3.34368e-1, 4.93785e-1, 5.91216e-1, 4.74198e-1, 8.33601e-1, 8.53603e-1],
        "sigma_a": [9.06570e-3, 4.29670e-3, 3.28810e-2, 1.22030e-1, 1.82980e-1, 5.68460e-1, 5.85210e-1],
        "sigma_s": [
            [1.30457e-1, 4.17920e-2, 8.51050e-6, 5.13290e-9, 0.0,        0.0,        0.0       ],
            [0.0,        3.28428e-1, 1.64360e-3, 2.20170e-9, 0.0,        0.0,        0.0       ],
            [0.0,        0.0,        4.58371e-1, 2.53310e-3, 0.0,        0.0,        0.0       ],
            [0.0,        0.0,        0.0,        4.63709e-1, 5.47660e-3, 0.0,        0.0       ],
            [0.0,        0.0,        0.0,        1.76190e-4, 2.82313e-1, 8.72890e-3, 9.00160e-9],
            [0.0,        0.0,        0.0,        0.0,        2.27600e-3, 2.49751e-1, 1.31140e-2],
            [0.0,        0.0,        0.0,        0.0,        0.0,        8.86450e-3, 2.59529e-1],
        ],
        "nu_sigma_f": [2.381395e-2, 3.858689e-3, 2.413400e-2, 9.436622e-2, 4.576988e-2, 9.281814e-1, 1.043200e+0],
        "chi":        [5.87910e-1, 4.11760e-1, 3.39060e-4, 1.17610e-7, 0.0, 0.0, 0.0],
    },
    "mox8.7": {
        "sigma_t": [1.83045e-1, 3.36705e-1, 5.00507e-1, 6.06174e-1, 5.02754e-1, 9.21028e-1, 9.55231e-1],
        "sigma_a": [9.48620e-3, 4.65560e-3, 3.62400e-2, 1.32720e-1, 2.08400e-1, 6.58700e-1, 6.90170e-1],
        "sigma_s": [
            [1.31504e-1, 4.20460e-2, 8.69720e-6, 5.19380e-9, 0.0,        0.0,        0.0       ],
            [0.0,        3.30403e-1, 1.64630e-3, 2.60060e-9, 0.0,        0.0,        0.0       ],
            [0.0,        0.0,        4.61792e-1, 2.47490e-3, 0.0,        0.0,        0.0       ],
            [0.0,        0.0,        0.0,        4.68021e-1, 5.43300e-3, 0.0,        0.0       ],
            [0.0,        0.0,        0.0,        1.85970e-4, 2.85771e-1, 8.39730e-3, 8.92800e-9],
            [0.0,        0.0,        0.0,        0.0,        2.39160e-3, 2.47614e-1, 1.23220e-2],
            [0.0,        0.0,        0.0,        0.0,        0.0,        8.96810e-3, 2.56093e-1],
        ],
        "nu_sigma_f": [2.518600e-2, 4.739509e-3, 2.947805e-2, 1.122500e-1, 5.530301e-2, 1.074999e+0, 1.239298e+0],
        "chi":        [5.87910e-1, 4.11760e-1, 3.39060e-4, 1.17610e-7, 0.0, 0.0, 0.0],
    },
    "moderator": {
        "sigma_t": [1.59206e-1, 4.12970e-1, 5.90310e-1, 5.84350e-1, 7.18000e-1, 1.25445e+0, 2.65038e+0],
        "sigma_a": [6.01050e-4, 1.57930e-5, 3.37160e-4, 1.94060e-3, 5.74160e-3, 1.50010e-2, 3.72390e-2],
        "sigma_s": [
            [4.44777e-2, 1.13400e-1, 7.23470e-4, 3.74990e-6, 5.31840e-8, 0.0,        0.0       ],
            [0.0,        2.82334e-1, 1.29940e-1, 6.23400e-4, 4.80020e-5, 7.44860e-6, 1.04550e-6],
            [0.0,        0.0,        3.45256e-1, 2.24570e-1, 1.69990e-2, 2.64430e-3, 5.03440e-4],
            [0.0,        0.0,        0.0,        9.10284e-2, 4.15510e-1, 6.37320e-2, 1.21390e-2],
            [0.0,        0.0,        0.0,        7.14370e-5, 1.39138e-1, 5.11820e-1, 6.12290e-2],
            [0.0,        0.0,        0.0,        0.0,        2.21570e-3, 6.99913e-1, 5.37320e-1],
            [0.0,        0.0,        0.0,        0.0,        0.0,        1.32440e-1, 2.48070e+0],
        ],
        "nu_sigma_f": [0.0] * 7,
        "chi":        [0.0] * 7,
    },
    "guide_tube": {
        "sigma_t": [1.26032e-1, 2.93160e-1, 2.84240e-1, 2.80960e-1, 3.34440e-1, 5.65640e-1, 1.17215e+0],
        "sigma_a": [5.11320e-4, 7.58010e-5, 3.15720e-4, 1.15820e-3, 3.39750e-3, 9.18780e-3, 2.32420e-2],
        "sigma_s": [
            [6.61659e-2, 5.90700e-2, 2.83340e-4, 1.46220e-6, 2.06420e-8, 0.0,        0.0       ],
            [0.0,        2.40377e-1, 5.24350e-2, 2.49900e-4, 1.92390e-5, 2.98750e-6, 4.21400e-7],
            [0.0,        0.0,        1.83297e-1, 9.23970e-2, 6.94460e-3, 1.08030e-3, 2.05670e-4],
            [0.0,        0.0,        0.0,        7.88511e-2, 1.70140e-1, 2.58810e-2, 4.92970e-3],
            [0.0,        0.0,        0.0,        3.73330e-5, 9.97372e-2, 2.06790e-1, 2.44780e-2],
            [0.0,        0.0,        0.0,        0.0,        9.17260e-4, 3.16765e-1, 2.38770e-1],
            [0.0,        0.0,        0.0,        0.0,        0.0,        4.97920e-2, 1.09912e+0],
        ],
        "nu_sigma_f": [0.0] * 7,
        "chi":        [0.0] * 7,
    },
    "fission_chamber": {
        "sigma_t": [1.26032e-1, 2.93160e-1, 2.84250e-1, 2.81020e-1, 3.34460e-1, 5.65640e-1, 1.17214e+0],
        "sigma_a": [5.11320e-4, 7.58130e-5, 3.16430e-4, 1.16750e-3, 3.39770e-3, 9.18860e-3, 2.32440e-2],
        "sigma_s": [
            [6.61659e-2, 5.90700e-2, 2.83340e-4, 1.46220e-6, 2.06420e-8, 0.0,        0.0       ],
            [0.0,        2.40377e-1, 5.24350e-2, 2.49900e-4, 1.92390e-5, 2.98750e-6, 4.21400e-7],
            [0.0,        0.0,        1.83425e-1, 9.22880e-2, 6.93650e-3, 1.07900e-3, 2.05430e-4],
            [0.0,        0.0,        0.0,        7.90769e-2, 1.69990e-1, 2.58600e-2, 4.92560e-3],
            [0.0,        0.0,        0.0,        3.73400e-5, 9.97570e-2, 2.06790e-1, 2.44780e-2],
            [0.0,        0.0,        0.0,        0.0,        9.17420e-4, 3.16774e-1, 2.38760e-1],
            [0.0,        0.0,        0.0,        0.0,        0.0,        4.97930e-2, 1.09910e+0],
        ],
        "nu_sigma_f": [1.323401e-8, 1.434500e-8, 1.128599e-6, 1.276299e-5, 3.538502e-7, 1.740099e-6, 5.063302e-6],
        "chi":        [5.87910e-1, 4.11760e-1, 3.39060e-4, 1.17610e-7, 0.0, 0.0, 0.0],
    },
}

# Material order used by c5g7_materials(); matches the usual pin numbering
C5G7_ORDER = ["uo2", "mox4.3", "mox7.0", "mox8.7", "guide_tube", "fission_chamber", "moderator"]


class Materials:
    """Cross-section container indexed by (material, group)."""

    def __init__(
        self,
        sigma_t,
        sigma_s,
        nu_sigma_f=None,
        chi=None,
        diff_coef=None,
        names: Optional[Sequence[str]] = None,
    ):
        self.sigma_t = np.atleast_2d(np.asarray(sigma_t, dtype=np.float64))
        n_mat, ng = self.sigma_t.shape
        self.sigma_s = np.asarray(sigma_s, dtype=np.float64).reshape(n_mat, ng, ng)
        self.nu_sigma_f = (np.zeros((n_mat, ng)) if nu_sigma_f is None
                           else np.asarray(nu_sigma_f, dtype=np.float64).reshape(n_mat, ng))
        self.chi = (np.zeros((n_mat, ng)) if chi is None
                    else np.asarray(chi, dtype=np.float64).reshape(n_mat, ng))
        if diff_coef is None:
            diff_coef = 1.0 / (3.0 * np.maximum(self.sigma_t, 1e-12))
        self.diff_coef = np.asarray(diff_coef, dtype=np.float64).reshape(n_mat, ng)
        self.names = list(names) if names is not None else [f"mat{m}" for m in range(n_mat)]
        self._validate()

    def _validate(self):
        if np.any(self.sigma_t <= 0.0):
            raise ConfigurationError("sigma_t must be strictly positive in every group")
        if len(self.names) != self.number_materials:
            raise ConfigurationError(
                f"{len(self.names)} names given for {self.number_materials} materials"
            )
        if np.any(self.sigma_s < 0.0) or np.any(self.nu_sigma_f < 0.0) or np.any(self.chi < 0.0):
            raise ConfigurationError("Cross sections and fission spectra must be non-negative")
        # sum over destination groups; more than sigma_t means negative absorption
        excess = self.sigma_s.sum(axis=1) - self.sigma_t
        if np.any(excess > 1e-9 * self.sigma_t):
            m, g = np.argwhere(excess > 1e-9 * self.sigma_t)[0]
            raise ConfigurationError(
                f"Out-scatter exceeds sigma_t for {self.names[m]} group {g} by {excess[m, g]:.4e}"
            )

    @property
    def number_groups(self) -> int:
        return self.sigma_t.shape[1]

    @property
    def number_materials(self) -> int:
        return self.sigma_t.shape[0]

    def is_fissile(self, m: Optional[int] = None) -> bool:
        nuf = self.nu_sigma_f if m is None else self.nu_sigma_f[m]
        return bool(np.any(nuf > 0.0))

    def removal(self, m: int, g: int) -> float:
        """Total minus within-group scatter."""
        return float(self.sigma_t[m, g] - self.sigma_s[m, g, g])

    def kinf(self, m: int) -> float:
        """
        Infinite-medium multiplication factor of material m:
        dominant eigenvalue of (T - S)^-1 chi nu_sigma_f^T.
        """
        if not self.is_fissile(m):
            return 0.0
        loss = np.diag(self.sigma_t[m]) - self.sigma_s[m]
        production = np.outer(self.chi[m], self.nu_sigma_f[m])
        eigvals = np.linalg.eigvals(np.linalg.solve(loss, production))
        return float(np.max(eigvals.real))

    def infinite_medium_spectrum(self, m: int) -> np.ndarray:
        """Fundamental-mode flux spectrum of material m, normalised to unit sum."""
        loss = np.diag(self.sigma_t[m]) - self.sigma_s[m]
        production = np.outer(self.chi[m], self.nu_sigma_f[m])
        vals, vecs = np.linalg.eig(np.linalg.solve(loss, production))
        spectrum = vecs[:, np.argmax(vals.real)].real
        return spectrum / spectrum.sum()


def c5g7_materials(names: Optional[Sequence[str]] = None) -> Materials:
    """
    Build the 7-group C5G7 library.

    The tabulated scattering matrices are stored from-group by row, so they
    are transposed into the into-group-first layout used by Materials.
    """
    names = list(names) if names is not None else C5G7_ORDER
    missing = [n for n in names if n not in C5G7_XS]
    if missing:
        raise ConfigurationError(f"Unknown C5G7 materials: {missing}")
    return Materials(
        sigma_t=[C5G7_XS[n]["sigma_t"] for n in names],
        sigma_s=[np.asarray(C5G7_XS[n]["sigma_s"]).T for n in names],
        nu_sigma_f=[C5G7_XS[n]["nu_sigma_f"] for n in names],
        chi=[C5G7_XS[n]["chi"] for n in names],
        names=names,
    )


def slab_materials(number_groups: int = 2) -> Materials:
    """
    Small slab-reactor style library: material 0 is a reflector, materials 1..3
    are fuels of decreasing reactivity.  Supports 1 or 2 groups.
    """
    if number_groups == 1:
        return Materials(
            sigma_t=[[0.6], [0.5], [0.5], [0.5]],
            sigma_s=[[[0.57]], [[0.40]], [[0.40]], [[0.41]]],
            nu_sigma_f=[[0.0], [0.11], [0.10], [0.08]],
            chi=[[0.0], [1.0], [1.0], [1.0]],
            names=["reflector", "fuel_a", "fuel_b", "fuel_c"],
        )
    if number_groups == 2:
        return Materials(
            sigma_t=[[0.2181, 0.7850], [0.2216, 0.7880], [0.2221, 0.8031], [0.2222, 0.8060]],
            sigma_s=[
                [[0.1843, 0.0], [0.0303, 0.7498]],
                [[0.1939, 0.0], [0.0201, 0.7070]],
                [[0.1933, 0.0], [0.0203, 0.6993]],
                [[0.1925, 0.0], [0.0201, 0.6932]],
            ],
            nu_sigma_f=[[0.0, 0.0], [0.0045, 0.1069], [0.0046, 0.1083], [0.0050, 0.1211]],
            chi=[[0.0, 0.0], [1.0, 0.0], [1.0, 0.0], [1.0, 0.0]],
            names=["reflector", "fuel_a", "fuel_b", "fuel_c"],
        )
    raise ConfigurationError(f"slab_materials supports 1 or 2 groups, got {number_groups}")

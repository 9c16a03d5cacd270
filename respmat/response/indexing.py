"""
Linear index of incident / outgoing expansion modes.

A mode is (group, space order, azimuth order, polar order), nested with the
group outermost and the polar order innermost:

    k = ((g * (S + 1) + s) * (A + 1) + a) * (P + 1) + p

for maximum orders S, A, P.  Row indices of the coefficient blocks use the
same ordering.
"""

from __future__ import annotations
from typing import Iterator, Tuple

from ..errors import ConfigurationError


class ModeIndex:

    def __init__(self, number_groups: int, max_order_space: int = 0,
                 max_order_azimuth: int = 0, max_order_polar: int = 0):
        if number_groups < 1:
            raise ConfigurationError("number_groups must be positive")
        if min(max_order_space, max_order_azimuth, max_order_polar) < 0:
            raise ConfigurationError("Expansion orders must be non-negative")
        self.number_groups = number_groups
        self.shape = (number_groups, max_order_space + 1, max_order_azimuth + 1, max_order_polar + 1)

    @property
    def modes_per_group(self) -> int:
        _, ns, na, npol = self.shape
        return ns * na * npol

    @property
    def size(self) -> int:
        return self.number_groups * self.modes_per_group

    def __len__(self) -> int:
        return self.size

    def index(self, g: int, s: int, a: int, p: int) -> int:
        _, ns, na, npol = self.shape
        for value, bound, name in ((g, self.number_groups, "group"), (s, ns, "space"),
                                   (a, na, "azimuth"), (p, npol, "polar")):
            if not 0 <= value < bound:
                raise IndexError(f"{name} index {value} out of range [0, {bound})")
        return ((g * ns + s) * na + a) * npol + p

    def unravel(self, k: int) -> Tuple[int, int, int, int]:
        if not 0 <= k < self.size:
            raise IndexError(f"Mode index {k} out of range [0, {self.size})")
        _, ns, na, npol = self.shape
        k, p = divmod(k, npol)
        k, a = divmod(k, na)
        g, s = divmod(k, ns)
        return g, s, a, p

    def group_slice(self, g: int) -> slice:
        m = self.modes_per_group
        return slice(g * m, (g + 1) * m)

    def __iter__(self) -> Iterator[Tuple[int, int, int, int]]:
        for k in range(self.size):
            yield self.unravel(k)

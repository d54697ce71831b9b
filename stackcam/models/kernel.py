from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence, Union
import numpy as np

from ..exceptions import InvalidKernel


@dataclass(frozen=True)
class Kernel:
    """
    Square matrix of signed weights with an odd side length.
    The weights array is made read-only so one kernel can be shared freely.
    """
    weights: np.ndarray  # Shape (side, side), dtype float32.

    def __post_init__(self):
        # Own a private float32 copy so freezing it never touches the caller's array.
        try:
            w = np.array(self.weights, dtype=np.float32)
        except (TypeError, ValueError) as err:
            raise InvalidKernel(f"Kernel weights are not numeric: {err}", self.weights) from err
        if w.ndim != 2 or w.shape[0] != w.shape[1]:
            raise InvalidKernel(f"Kernel must be square, got shape {w.shape}", w.shape)
        if w.shape[0] < 1 or w.shape[0] % 2 == 0:
            raise InvalidKernel(f"Kernel side must be odd and >= 1, got {w.shape[0]}", w.shape[0])
        w.setflags(write=False)
        object.__setattr__(self, "weights", w)

    @property
    def side(self) -> int:
        return self.weights.shape[0]

    @property
    def half(self) -> int:
        return self.side // 2

    @classmethod
    def from_values(cls, values: Union[Sequence[float], Sequence[Sequence[float]]]) -> "Kernel":
        """
        Build a kernel from nested rows or a flat row-major list whose
        length is a perfect square.
        """
        arr = np.array(values, dtype=np.float32)
        if arr.ndim == 1:
            side = int(round(np.sqrt(arr.size)))
            if side * side != arr.size:
                raise InvalidKernel(f"{arr.size} weights do not form a square kernel", arr.size)
            arr = arr.reshape(side, side)
        return cls(arr)


IDENTITY_KERNEL = Kernel.from_values([[1.0]])

# Simple sharpen kernel, simulates a high megapixel sensor.
SHARPEN_KERNEL = Kernel.from_values([
    [0, -1, 0],
    [-1, 5, -1],
    [0, -1, 0],
])

"""
Seeded fractal noise used to synthesize terrain elevation.

Noise values come from OpenSimplex gradient noise, summed over octaves of
doubling frequency and decaying amplitude. The result is continuous in its
inputs and fully determined by the seed.
"""

from typing import Any

import numpy as np
from numpy.typing import NDArray
from opensimplex import OpenSimplex


class OctaveNoise:
    """
    Octaved 2D OpenSimplex noise normalised to ``[-1, 1]``.

    Attributes:
        seed: Noise seed
        octaves: Number of summed layers
        persistence: Amplitude multiplier between consecutive octaves
    """

    def __init__(self, seed: int, octaves: int = 8, persistence: float = 0.5):
        """
        Initialize the noise source.

        Args:
            seed: Integer seed
            octaves: Number of octaves (>= 1)
            persistence: Amplitude decay per octave
        """
        if octaves < 1:
            raise ValueError("octaves must be at least 1")

        self.seed = seed
        self.octaves = octaves
        self.persistence = persistence
        self._generator = OpenSimplex(seed=seed)

        amplitudes = persistence ** np.arange(octaves, dtype=np.float64)
        self._amplitudes = amplitudes
        self._frequencies = 2.0 ** np.arange(octaves, dtype=np.float64)
        self._max_value = float(amplitudes.sum())

    def value(self, x: float, y: float) -> float:
        """
        Sample the noise at a single point.

        Args:
            x: X coordinate in noise space
            y: Y coordinate in noise space

        Returns:
            Noise value in ``[-1, 1]``
        """
        total = 0.0
        for amplitude, frequency in zip(self._amplitudes, self._frequencies):
            total += self._generator.noise2(x * frequency, y * frequency) * amplitude
        return total / self._max_value

    def values(
        self, xs: NDArray[np.floating[Any]], ys: NDArray[np.floating[Any]]
    ) -> NDArray[np.float64]:
        """
        Sample the noise at scattered points.

        Args:
            xs: X coordinates
            ys: Y coordinates, same shape as ``xs``

        Returns:
            Array of noise values with the shape of ``xs``
        """
        xs = np.asarray(xs, dtype=np.float64)
        ys = np.asarray(ys, dtype=np.float64)
        if xs.shape != ys.shape:
            raise ValueError("xs and ys must have the same shape")

        out = np.empty(xs.shape, dtype=np.float64)
        flat_out = out.reshape(-1)
        for i, (x, y) in enumerate(zip(xs.reshape(-1), ys.reshape(-1))):
            flat_out[i] = self.value(float(x), float(y))
        return out

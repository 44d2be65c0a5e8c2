"""
Weight indexed item pool with draws proportional to weight.
"""
import bisect
import math

import numpy as np


class WeightedSampler:
    """
    Collection of items that can be drawn at random, proportionally to their weight

    Items are stored with a running cumulative weight so that inserting is
    O(1) and a draw is a binary search over the cumulative weights.
    Draws are independent and with replacement.
    """

    def __init__(self, seed=None, rng=None):
        """
        Args:
            seed: Seed for a private numpy Generator (ignored if rng is given)
            rng: numpy.random.Generator to draw from
        """
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self._items = []
        self._cumulative_weights = []

    def add_item(self, item, weight):
        """
        Insert an item

        Args:
            item: Anything
            weight: Non-negative sampling weight (zero weight items are never drawn)
        """
        weight = float(weight)
        if not math.isfinite(weight) or weight < 0.0:
            raise ValueError(f"Sampling weight must be finite and >= 0, got {weight}")
        self._items.append(item)
        self._cumulative_weights.append(self.total_weight + weight)

    def clear(self):
        self._items = []
        self._cumulative_weights = []

    def size(self):
        return len(self._items)

    def __len__(self):
        return len(self._items)

    def empty(self):
        return not self._items

    def __getitem__(self, index):
        return self._items[index]

    def __iter__(self):
        return iter(self._items)

    @property
    def total_weight(self):
        return self._cumulative_weights[-1] if self._cumulative_weights else 0.0

    def get_weight(self, index):
        """Weight the item at index was inserted with"""
        previous = self._cumulative_weights[index - 1] if index > 0 else 0.0
        return self._cumulative_weights[index] - previous

    def get_random_item(self):
        """Draw one item, with probability weight / total_weight"""
        self._check_drawable()
        r = self.rng.uniform(0.0, self.total_weight)
        index = bisect.bisect_right(self._cumulative_weights, r)
        # uniform() may return the upper bound through rounding
        return self._items[min(index, len(self._items) - 1)]

    def sample(self, n):
        """
        Draw n items at once

        Args:
            n: Number of draws

        Returns:
            List of n items (with replacement)
        """
        self._check_drawable()
        r = self.rng.uniform(0.0, self.total_weight, size=int(n))
        indices = np.searchsorted(self._cumulative_weights, r, side='right')
        indices = np.minimum(indices, len(self._items) - 1)
        return [self._items[i] for i in indices]

    def _check_drawable(self):
        if not self._items or self.total_weight <= 0.0:
            raise ValueError("Cannot draw from a sampler without positive total weight")

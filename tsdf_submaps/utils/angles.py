"""Heading angle helpers for the pose graph backend."""
import numpy as np


def normalize_angle(angle):
    """
    Wrap an angle to the interval [-pi, pi).

    Works elementwise on numpy arrays.
    """
    two_pi = 2.0 * np.pi
    return angle - two_pi * np.floor((angle + np.pi) / two_pi)


class AngleLocalParameterization:
    """Manifold update rule keeping a heading angle in [-pi, pi)"""

    global_size = 1
    local_size = 1

    def plus(self, theta, delta_theta):
        """Apply a local increment to an angle"""
        return normalize_angle(theta + delta_theta)

    def __call__(self, theta, delta_theta):
        return self.plus(theta, delta_theta)

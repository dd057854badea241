"""
Gaussianizer: histogram Gaussianization of textures for procedural texture synthesis.

This package remaps each color channel of a texture so that its histogram follows a
normal distribution N(0.5, (1/6)^2), and builds the compact inverse lookup table that
lets a renderer undo the transform without the original texture.

References:
    Heitz, E. & Neyret, F. (2018). High-Performance By-Example Noise using a
    Histogram-Preserving Blending Operator. *Proceedings of the ACM on Computer Graphics
    and Interactive Techniques, 1*(2), 31:1-31:25. https://doi.org/10.1145/3233304
"""

# Metadata
__version__ = "0.1.0"

from .Options import Options
from .TextureProcessor import TextureProcessor
from .utils import transform_histogram, reconstruct_from_lut


__all__ = [
    "Options",
    "TextureProcessor",
    "transform_histogram",
    "reconstruct_from_lut",
]

"""
Setup script for the gaussianizer package.

Pure Python package (src layout). The `gaussianizer` console script precomputes the
Gaussianized texture and its inverse lookup table from a source image.
"""

from setuptools import setup, find_packages


setup(
    name="gaussianizer",
    version="0.1.0",
    description="Histogram Gaussianization of textures and inverse LUT precomputation for procedural texture synthesis",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "numpy>=1.21.1",
        "scipy>=1.7",
        "pillow>=9.0.1",
        "opencv-python-headless>=4.5",
        "matplotlib>=3.9.2",
        "pydantic>=2.0",
        "tqdm>=4.60",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "gaussianizer=gaussianizer.GAUSSIANIZER:main",
        ],
    },
    python_requires=">=3.9, <4",
    zip_safe=False,
)

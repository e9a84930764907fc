"""
Setup script for factorymath package.
"""

from setuptools import setup, find_packages

setup(
    name="factorymath",
    version="0.1.0",
    packages=find_packages(include=["factorymath", "factorymath.*"]),
    install_requires=[
        # Core numerical dependencies
        "numpy>=1.20.0",
        "pandas>=1.3.0",
        "scipy>=1.7.0",

        # Utilities
        "pyyaml>=6.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=6.0.0",
            "scikit-learn>=1.0.0",
        ],
    },
    entry_points={
        'console_scripts': [
            'factorymath=factorymath.__main__:main',
        ],
    },
    author="Factorymath Team",
    description="Correlation and cluster analysis for industrial measurement data",
    keywords="clustering, outlier detection, pca, correlation, k-means",
    python_requires=">=3.8",
)

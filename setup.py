# ===============================================
# rank-average-treatment-effect Setup
# ===============================================
# Usage:
#   Development mode: pip install -e ".[dev]"
#   Production mode:  pip install .

from setuptools import setup, find_packages

setup(
    name="rank-average-treatment-effect",
    version="0.1.0",
    description="RATE / TOC evaluation of treatment prioritization rules with clustered half-sample bootstrap",
    author="CLampard",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"rate_toc": ["defaults.yaml"]},
    include_package_data=True,
    python_requires=">=3.9",
    install_requires=[
        # Core data processing
        "pandas>=2.0.0",
        "numpy>=1.24.0",

        # Normal quantiles for confidence intervals
        "scipy>=1.11.0",

        # Configuration management
        "pyyaml>=6.0",

        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Mathematics",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)

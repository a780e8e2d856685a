"""
Setup script for the acute stay reconstruction project.
"""

from setuptools import find_packages, setup

setup(
    name="acute-stay-los",
    version="0.1.0",
    description="Reconstruct contiguous acute inpatient stays from fragmented encounter records and compute length of stay",
    author="Acute Stay Project Team",
    package_dir={"": "src"},  # Packages live under src
    packages=find_packages(where="src"),
    install_requires=[
        "pandas>=1.3.0",
        "pyarrow>=7.0.0",
        "tqdm>=4.62.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=3.0.0",
            "pytest-mock>=3.10.0",
            "black>=22.1.0",
            "flake8>=4.0.0",
            "isort>=5.10.0",
            "mypy>=1.0",
            "types-PyYAML",
            "pandas-stubs",
        ],
    },
    entry_points={
        "console_scripts": [
            "acute-los=stays.determine_los:main",
        ],
    },
    python_requires=">=3.8",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Topic :: Scientific/Engineering :: Medical Science Apps.",
    ],
)

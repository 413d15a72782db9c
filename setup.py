"""
Real-Estate Monte Carlo & Sensitivity Engine -- Package Setup

References:
    Hertz, D.B. (1964). Risk Analysis in Capital Investment. Harvard
        Business Review, 42(1), 95-106.
    Glasserman, P. (2003). Monte Carlo Methods in Financial Engineering.
        Springer. Ch. 2: Generating Random Variables.
    Welford, B.P. (1962). Note on a Method for Calculating Corrected Sums of
        Squares and Products. Technometrics, 4(3), 419-420.
"""
from setuptools import setup, find_packages

setup(
    name="realestate-monte-carlo",
    version="1.0.0",
    description=(
        "Monte Carlo simulation, risk metrics and tornado sensitivity "
        "analysis for real-estate investment scenarios"
    ),
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.24.0",
        "scipy>=1.10.0",
        "pandas>=2.0.0",
        "matplotlib>=3.7.0",
        "joblib>=1.3.0",
    ],
    extras_require={
        "dev": ["pytest>=7.4.0", "black", "flake8"],
    },
    keywords=[
        "monte-carlo", "real-estate", "value-at-risk", "sensitivity-analysis",
        "tornado-chart", "risk-analysis",
    ],
    classifiers=[
        "Intended Audience :: Financial and Insurance Industry",
        "Topic :: Office/Business :: Financial :: Investment",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)

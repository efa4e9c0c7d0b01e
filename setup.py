"""Package setup for transaction-risk-engine."""

from setuptools import find_packages, setup

with open("README.md", encoding="utf-8") as f:
    long_description = f.read()

with open("requirements.txt", encoding="utf-8") as f:
    requirements = [
        line.strip() for line in f if line.strip() and not line.startswith("#")
    ]

setup(
    name="transaction-risk-engine",
    version="1.0.0",
    description="Transaction risk-scoring engine fusing anomaly detection, behavioral profiling and supervised classification",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["risk_engine", "risk_engine.*"]),
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "risk-engine=risk_engine.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Financial and Insurance Industry",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
        "Topic :: Security",
    ],
    keywords="fraud detection risk-scoring anomaly-detection behavioral-profiling",
)

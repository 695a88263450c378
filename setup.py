"""Setup configuration for the Planx telemetry correlation layer."""

from setuptools import find_packages, setup

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="planx-telemetry",
    version="1.0.0",
    description="Tracing, metrics and trace-correlated logging for the Planx pipeline engine",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Planx Team",
    packages=find_packages(include=["planx", "planx.*"], exclude=["planx.tests", "planx.tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "opentelemetry-api>=1.27.0",
        "opentelemetry-sdk>=1.27.0",
        "opentelemetry-exporter-otlp>=1.27.0",
        "JSON-log-formatter>=0.5.2",
        "PyYAML>=5.4.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: System :: Monitoring",
    ],
    keywords="planx pipeline opentelemetry tracing metrics logging",
)

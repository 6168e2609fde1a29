"""
shapes-interop — Shapes Interoperability Test Client

Publishes or subscribes to bouncing "shapes" over a shared-memory
publish/subscribe transport, driven by a single readiness-driven loop.
"""

from setuptools import setup, find_packages
from pathlib import Path

long_description = (Path(__file__).parent / "README.md").read_text(encoding="utf-8")

setup(
    name="shapes-interop",
    version="0.2.2",
    author="RAFT Robotics",
    description=(
        'Command-line "shapes" interoperability test over a shared-memory '
        "publish/subscribe transport."
    ),
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests*", "examples*"]),
    python_requires=">=3.10",
    install_requires=[
        "numpy>=1.21",
        "msgpack>=1.0",
        "click>=8.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-timeout",
        ],
    },
    entry_points={
        "console_scripts": [
            "shapes-interop=shapes_interop.cli:main",
        ],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: POSIX :: Linux",
        "Operating System :: MacOS",
        "Intended Audience :: Developers",
        "Topic :: System :: Networking",
        "Topic :: Software Development :: Testing",
    ],
)

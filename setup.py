from setuptools import setup, find_packages

setup(
    name="hunkwise",
    version="0.1.0",
    packages=find_packages(include=["hunkwise", "hunkwise.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pyyaml",
        # Interactive hunk review (--tui)
        "textual",
    ],
    extras_require={
        "test": [
            "pytest",
        ],
    },
    entry_points={
        "console_scripts": [
            "hunkwise=hunkwise.cli:main",
        ],
    },
    description="Unified-diff parsing and patch application for AI coding agents.",
)

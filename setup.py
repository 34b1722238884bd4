# setup.py
from setuptools import setup, find_namespace_packages

setup(
    name="pt2dump",
    version="0.1.0",
    description="Decoder for PicoHarp 300 T2 mode time-tag files (*.pt2)",
    package_dir={"": "src"},
    packages=find_namespace_packages(where="src", include=["pt2dump*"]),
    python_requires=">=3.10",
    install_requires=[
        "numpy",
        "xarray",
        "qtpy",
        "PyQt5",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "pt2dump=pt2dump.cli:main",
        ],
    },
)

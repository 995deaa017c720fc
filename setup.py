from setuptools import setup, find_packages

setup(
    name="mafreanno",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    entry_points={
        "console_scripts": [
            "mafreanno=mafreanno.cli:main",
        ],
    },
    install_requires=[
        "pysam",
        "pyyaml",
        "pytest"
    ],
    extras_require={
        "parquet": ["pandas", "pyarrow"],
    },
)

from setuptools import setup, find_packages

setup(
    name="booxsync",
    version="0.1.0",
    description="Upload local documents missing from a Boox e-reader library",
    author="",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "click>=8.0.0",
        "requests>=2.28.0",
        "filelock>=3.9.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "booxsync=booxsync.cli:main",
        ],
    },
    python_requires=">=3.9",
)

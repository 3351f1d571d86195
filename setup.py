from setuptools import find_packages, setup

setup(
    name="cachedfs",
    version="0.1.0",
    description="Interchangeable filesystem backends with an LRU/TTL caching layer",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "cachetools>=5.0.0",
        "paramiko>=3.0.0",
    ],
    entry_points={
        "console_scripts": [
            "cachedfs=cachedfs.__main__:main",
        ],
    },
    python_requires=">=3.10",
    extras_require={
        "dev": [
            "pytest",
            "pytest-asyncio",
            "build",
            "twine",
        ],
    },
)

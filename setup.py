from setuptools import setup, find_packages

setup(
    name="scribe",
    version="0.1.0",
    description="Voice meeting note taker: records voice rooms and posts AI summaries",
    author="",
    python_requires=">=3.9",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "py-cord[voice]>=2.4.0",
        "numpy>=1.21.0",
        "google-cloud-speech>=2.16.0",
        "google-auth[requests]>=2.10.0",
        "rich>=12.5.0",
        "pyyaml>=6.0.0",
        "pypubsub>=4.0.3",
        "aiohttp>=3.8.0",
        "tenacity>=8.2.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "scribe=scribe.main:main",
        ],
    },
)

"""Setup configuration for the Serenity Discord bot."""

from setuptools import setup, find_packages

setup(
    name="serenity",
    version="0.0.1",
    description="A Discord bot with bounded, time-aware guild and user caches",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "py-cord>=2.6",
        "aiosqlite>=0.20",
        "PyYAML>=6.0",
        "python-dotenv>=1.0",
        "prompt_toolkit>=3.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "serenity=serenity.main:main",
        ],
    },
)

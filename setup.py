"""Setup configuration for Cardcord Discord Bot."""

from setuptools import setup, find_packages

setup(
    name="cardcord",
    version="0.0.1",
    description="A Discord bot that coordinates surprise birthday cards",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "discord.py>=2.4",
        "aiosqlite>=0.20",
        "PyYAML>=6.0",
        "python-dotenv>=1.0",
        "tzdata",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "cardcord=cardcord.main:main",
            "cardcord-scheduler=cardcord.external_scheduler:main",
        ],
    },
)

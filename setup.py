# setup.py
from setuptools import setup, find_packages

setup(
    name="leanpub_scout",
    version="0.1.0",
    description="Async scraper collecting an author's Leanpub books and their categories",
    packages=find_packages(exclude=("tests", "tests.*")),
    package_data={"leanpub_scout": ["report/templates/*.j2"]},
    install_requires=[
        "aiohttp>=3.9",
        "beautifulsoup4>=4.12",
        "click>=8.1",
        "Jinja2>=3.1",
        "pydantic>=2.5",
        "python-dotenv>=1.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": ["leanpub-scout=leanpub_scout.cli:cli"],
    },
    python_requires=">=3.11",
)

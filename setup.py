from setuptools import setup, find_packages

setup(
    name="bgg-rules-extractor",
    version="1.0.0",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    install_requires=[
        "httpx>=0.27.0",
        "orjson>=3.9.0",
        "beautifulsoup4>=4.12.0",
        "lxml>=4.9.0",
        "tqdm>=4.66.0",
        "click>=8.1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "bgg-rules=bgg_rules_extractor.cli:main",
        ],
    },
    python_requires=">=3.9",
)

import pathlib

from setuptools import setup

VERSION = "0.1.0"

HERE = pathlib.Path(__file__).parent
README = (HERE / "README.md").read_text()

setup(
    name="ryobi_gdo",
    version=VERSION,
    description="Library for Ryobi garage door openers",
    long_description=README,
    long_description_content_type="text/markdown",
    keywords="ryobi garage door opener websocket",
    package_data={"ryobi_gdo": ["py.typed"]},
    packages=["ryobi_gdo"],
    include_package_data=True,
    python_requires=">=3.11",
    install_requires=[
        "aiohttp>=3.8.0",
        "mashumaro>=3.10",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "pytest-aiohttp>=1.0.4",
        ],
    },
    entry_points={
        "console_scripts": [
            "ryobi_garage=ryobi_gdo.ryobi_garage:main",
        ],
    },
    zip_safe=False,
)

from setuptools import setup, find_packages

setup(
    name="ratekeeper",
    version="0.1.0",
    packages=find_packages(include=["ratekeeper", "ratekeeper.*"]),
    python_requires=">=3.12",
    install_requires=[
        "pydantic>=2.0",
        "pydantic-settings>=2.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
)

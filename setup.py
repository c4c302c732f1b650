"""Setup script for the Inherit companion package."""

from setuptools import setup, find_packages

setup(
    name="inherit-companion",
    version="0.1.0",
    packages=find_packages(exclude=("tests", "tests.*")),
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.110",
        "uvicorn>=0.29",
        "pydantic>=2.6",
        "pydantic-settings>=2.2",
        "python-dotenv>=1.0",
        "structlog>=24.1",
        "prometheus-client>=0.20",
        "langchain-core>=0.3",
        "langchain-ollama>=0.2",
        "langgraph>=0.2",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "httpx>=0.27",
        ],
    },
    description="Inherit companion - multi-agent message routing and orchestration engine",
    author="Inherit Team",
)

"""Setup configuration for the wholesale-orders service."""
from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="wholesale-orders",
    version="0.1.0",
    author="Wholesale Orders Contributors",
    description="Wholesale ordering portal API with a durable order export queue",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
        "Development Status :: 3 - Alpha",
        "Framework :: FastAPI",
    ],
    python_requires=">=3.9",
    install_requires=[
        "aiohttp>=3.8.0",
        "asyncpg>=0.27.0",
        "fastapi>=0.110.0",
        "pydantic>=2.0.0",
        "python-dateutil>=2.8.0",
        "uvicorn[standard]>=0.24.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "httpx>=0.24.0",
            "testcontainers[postgres]>=3.7.0",
            "black>=23.0.0",
            "mypy>=1.0.0",
            "flake8>=6.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "wholesale-orders-server=wholesale_orders.server_main:main",
            "wholesale-orders-worker=wholesale_orders.worker_main:main",
        ],
    },
)

"""Setup script for the Billing Resources service"""

from setuptools import setup, find_packages

setup(
    name="billing-resources",
    version="1.0.0",
    description="Per-user resource quota accounting for hosting panel servers",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.100.0",
        "uvicorn[standard]>=0.23.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "sqlalchemy[asyncio]>=2.0.0",
        "alembic>=1.12.0",
        "aiomysql>=0.2.0",
        "structlog>=23.1.0",
        "python-jose[cryptography]>=3.3.0",
        "prometheus-client>=0.18.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
            "hypothesis>=6.82.0",
            "httpx>=0.24.0",
            "aiosqlite>=0.19.0",
        ]
    },
)

from setuptools import setup, find_packages

setup(
    name="userapi",
    version="0.1.0",
    packages=find_packages(include=["userapi", "userapi.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.110",
        "starlette>=0.37",
        "pydantic>=2.6",
        "pydantic-settings>=2.2",
        "sqlalchemy[asyncio]>=2.0",
        "asyncpg>=0.29",
        "aiosqlite>=0.19",
        "redis>=5.0",
        "uvicorn[standard]>=0.27",
        "typing_extensions>=4.8",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
            "httpx>=0.27",
        ],
    },
)

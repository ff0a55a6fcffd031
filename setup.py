from setuptools import setup, find_packages

setup(
    name="accountability-reminders",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "sqlalchemy>=2.0",
        "celery[redis]",
        "redis",
        "python-dotenv",
        "pydantic>=2",
        "pydantic-settings",
        "python-dateutil",
        "prometheus-client",
    ],
    extras_require={
        "test": [
            "pytest",
            "tzdata",
        ],
    },
)

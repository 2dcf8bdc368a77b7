"""
taskform setup.py — Package configuration.
"""

from setuptools import find_packages, setup

setup(
    name="taskform",
    version="1.0.0",
    description="taskform — Add/edit task form controller over a REST task backend",
    packages=find_packages(include=["taskform", "taskform.*"]),
    py_modules=["rxconfig"],
    python_requires=">=3.11",
    install_requires=[
        "reflex>=0.8.0",
        "pydantic>=2.5",
        "pyyaml>=6.0",
        "httpx>=0.27",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
)

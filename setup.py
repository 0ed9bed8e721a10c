"""
Setup script for the career-copilot matching core.

Allows development installation with `pip install -e .`
"""

from pathlib import Path

from setuptools import setup, find_packages

version = {}
exec((Path(__file__).parent / "career_copilot" / "version.py").read_text(), version)

setup(
    name="career-copilot",
    version=version["__version__"],
    packages=find_packages(include=["career_copilot", "career_copilot.*"]),
    package_data={"career_copilot": ["data/*.json"]},
    python_requires=">=3.11",
    install_requires=[
        "python-dotenv>=1.0",
        "pydantic>=2.5",
        "tenacity>=8.2",
        "langchain-core>=0.3",
        "langchain-openai>=0.2",
        "json-repair>=0.25",
        "PyPDF2>=3.0",
        "python-docx>=1.1",
    ],
    entry_points={
        "console_scripts": ["career-copilot=career_copilot.cli:main"],
    },
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
)

import re

from setuptools import setup


def get_property(prop):
    result = re.search(
        rf'{prop}\s*=\s*[\'"]([^\'"]*)[\'"]',
        open("zkbench/__init__.py").read(),
    )
    return result.group(1)


with open("README.md", encoding="utf-8") as infile:
    long_description = infile.read()


setup(
    name="zkbench",
    version=get_property("__version__"),
    description="A cache-aware benchmark pipeline for zero-knowledge membership circuits",
    keywords=["zero-knowledge", "benchmark", "circom", "snarkjs", "groth16"],
    long_description_content_type="text/markdown",
    long_description=long_description,
    python_requires=">=3.9",
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Intended Audience :: Science/Research",
    ],
    packages=["zkbench"],
    entry_points={
        "console_scripts": [
            "zkbench=zkbench.cli:main",
        ]
    },
    install_requires=[
        "numpy",
        "pandas",
        "matplotlib",
        "psutil",
        "rich",
        "argcomplete",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-mock",
        ]
    },
)

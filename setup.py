from setuptools import setup, find_packages

with open("requirements.txt") as f:
    required = f.read().splitlines()

setup(
    name="bunches",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages("src"),
    install_requires=required,
    extras_require={"test": ["pytest"]},
    python_requires=">=3.10",
    entry_points={"console_scripts": ["bunches = bunches.cli:main"]},
    description="Git-hosted package collections shared across workspace members",
)

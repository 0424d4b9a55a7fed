from setuptools import setup, find_packages
from pathlib import Path

def parse_requirements(filename):
    return [line.strip() for line in Path(filename).read_text().splitlines()
            if line.strip() and not line.startswith("#")]

setup(
    name="pyspring-core",
    version="0.1.0",
    description="IoC container with layered configuration, conditional beans and dynamic properties",
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.11",
    install_requires=parse_requirements("requirements.txt"),
    extras_require={"dev": parse_requirements("requirements-test.txt")},
    entry_points={"console_scripts": ["pyspring=pyspring.__main__:main"]},
)

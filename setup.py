from pathlib import Path

from setuptools import find_packages, setup


def read_requirements(path: str) -> list[str]:
    with Path(path).open() as requirements_file:
        return [line.strip() for line in requirements_file if line.strip() and not line.startswith("#")]


setup(
    name="claim_calendar",
    version="0.1.0",
    packages=find_packages(include=["claim_calendar", "claim_calendar.*"]),
    include_package_data=True,
    install_requires=read_requirements("requirements.txt"),
    extras_require={"test": read_requirements("requirements-test.txt")},
    entry_points={"console_scripts": ["claim-calendar=claim_calendar.main:main"]},
    python_requires=">=3.11",
)

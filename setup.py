"""Setup script for ics2gcal."""

from pathlib import Path

from setuptools import find_packages, setup

# Read the README file
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Read requirements; test tooling goes to the "test" extra
requirements_file = Path(__file__).parent / "requirements.txt"
requirements = []
test_requirements = []

if requirements_file.exists():
    content = requirements_file.read_text().strip()
    lines = content.split("\n")

    for line in lines:
        line = line.strip()
        # Skip empty lines and comments
        if not line or line.startswith("#"):
            continue

        if "pytest" in line:
            test_requirements.append(line)
        else:
            requirements.append(line)

setup(
    name="ics2gcal",
    version="0.1.0",
    description="Import iCalendar (.ics) files, including recurring events and exclusions, into Google Calendar",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="ics2gcal contributors",
    url="https://github.com/ics2gcal/ics2gcal",
    # Package configuration
    packages=find_packages(exclude=["tests*", "docs*"]),
    include_package_data=True,
    # Dependencies
    install_requires=requirements,
    extras_require={
        "test": test_requirements,
        "dev": test_requirements
        + [
            "black>=23.0.0",
            "isort>=5.12.0",
            "mypy>=1.0.0",
            "types-PyYAML>=6.0",
            "types-python-dateutil>=2.8",
        ],
    },
    # datetime.UTC
    python_requires=">=3.11",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business :: Scheduling",
        "Framework :: AsyncIO",
    ],
    keywords="calendar ics icalendar google-calendar import recurrence async",
    # Entry points
    entry_points={
        "console_scripts": [
            "ics2gcal=ics2gcal.__main__:main",
        ],
    },
    zip_safe=False,
)

"""
Setup script for the Presence Monitor API
"""

from setuptools import setup, find_packages
import os
import sys
from pathlib import Path

here = Path(__file__).parent.absolute()

# Ensure we're in the right directory
if __name__ == "__main__":
    os.chdir(here)

# Read version from presence_monitor/__init__.py
def get_version():
    """Get version from presence_monitor/__init__.py"""
    version_file = here / "presence_monitor" / "__init__.py"
    if version_file.exists():
        with open(version_file, 'r') as f:
            for line in f:
                if line.startswith('__version__'):
                    return line.split('=')[1].strip().strip('"').strip("'")
    return "1.0.0"

# Read long description from README
def get_long_description():
    """Get long description from README.md"""
    readme_file = here / "README.md"
    if readme_file.exists():
        with open(readme_file, 'r', encoding='utf-8') as f:
            return f.read()
    return "Presence monitoring API for wireless sensing devices"

# Read requirements from requirements.txt if it exists
def get_requirements():
    """Get requirements from requirements.txt or use defaults"""
    requirements_file = here / "requirements.txt"
    if requirements_file.exists():
        with open(requirements_file, 'r') as f:
            return [line.strip() for line in f if line.strip() and not line.startswith('#')]

    return [
        "fastapi>=0.104.0",
        "uvicorn[standard]>=0.24.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "redis>=5.0.1",
        "aiomqtt>=2.0.0",
        "numpy>=1.24.0",
        "click>=8.1.0",
        "python-jose[cryptography]>=3.3.0",
        "passlib>=1.7.4",
        "python-dotenv>=1.0.0",
        "psutil>=5.9.0",
    ]

# Test requirements
def get_test_requirements():
    """Get test requirements"""
    return [
        "pytest>=7.4.0",
        "pytest-asyncio>=0.21.0",
        "httpx>=0.25.0",
    ]

# Development requirements
def get_dev_requirements():
    """Get development requirements"""
    return get_test_requirements() + [
        "pytest-cov>=4.1.0",
        "black>=23.9.0",
        "isort>=5.12.0",
        "flake8>=6.1.0",
        "mypy>=1.6.0",
    ]

# Check Python version
if sys.version_info < (3, 10):
    sys.exit("Python 3.10 or higher is required")

setup(
    name="presence-monitor",
    version=get_version(),
    description="Presence monitoring API for wireless sensing devices",
    long_description=get_long_description(),
    long_description_content_type="text/markdown",

    # Package configuration
    packages=find_packages(include=["presence_monitor", "presence_monitor.*"]),
    include_package_data=True,

    # Requirements
    python_requires=">=3.10",
    install_requires=get_requirements(),
    extras_require={
        "test": get_test_requirements(),
        "dev": get_dev_requirements(),
    },

    # Entry points
    entry_points={
        "console_scripts": [
            "presence-monitor=presence_monitor.cli:main",
        ],
    },

    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: System :: Networking :: Monitoring",
        "Topic :: Home Automation",
    ],

    keywords=["presence", "wifi", "iot", "mqtt", "wireless-sensing", "alerts"],

    zip_safe=False,
    platforms=["any"],
)

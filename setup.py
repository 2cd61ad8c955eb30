"""Setup configuration for metrics_loader"""

from setuptools import setup, find_packages

setup(
    name="github-metrics-loader",
    version="0.1.0",
    description=(
        "Scheduled job that appends daily GitHub repository clone metrics "
        "to a deduplicated per-repository series in S3."
    ),
    author="GitHub Metrics Loader Contributors",
    author_email="",
    python_requires=">=3.10",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "requests>=2.28.0",
        "boto3>=1.26.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0",
            "black>=22.0",
            "flake8>=4.0",
            "mypy>=0.950",
        ],
    },
    entry_points={
        "console_scripts": [
            "github-metrics-loader=metrics_loader.main:main",
        ],
    },
)

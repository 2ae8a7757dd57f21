"""Setup configuration for review_slo"""

from setuptools import setup, find_packages

setup(
    name="pr-review-slo",
    version="0.1.0",
    description=(
        "CLI tool tracking a personal 'no overdue review requests' SLO on a "
        "business-time calendar with a minute-granularity error budget."
    ),
    author="PR Review SLO Contributors",
    author_email="",
    python_requires=">=3.11",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "requests>=2.28.0",
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
            "pr-review-slo=review_slo.main:main",
        ],
    },
)

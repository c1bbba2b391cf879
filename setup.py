from setuptools import setup, find_packages
import pathlib, os

# Detect layout
use_src = pathlib.Path("src/casetools").exists()
pkg_args = {"package_dir": {"": "src"}, "packages": find_packages(where="src")} if use_src \
           else {"packages": find_packages(where=".")}

setup(
    name="case-tools",
    version="0.1.0",
    include_package_data=True,
    package_data={"casetools": ["templates/sbatch/*.j2"]},
    python_requires=">=3.9",
    install_requires=[
        "typer",
        "jinja2",
        "pyyaml",
        "pydantic>=2",
        "pandas",
    ],
    extras_require={"test": ["pytest"]},
    entry_points={
        "console_scripts": [
            "case-submit=casetools.cli:submit_main",
            "case-monitor=casetools.cli:monitor_main",
        ],
    },
    **pkg_args
)

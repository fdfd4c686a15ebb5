from setuptools import setup, find_packages
from pathlib import Path

# Read the long description from the README
long_description = Path(__file__).parent.joinpath("README.md").read_text(encoding="utf-8")

setup(
    name='sarif-issues',
    version='1.0.0',
    description='Turn SARIF static-analysis findings into deduplicated, auto-closing GitHub issues',
    long_description=long_description,
    long_description_content_type='text/markdown',

    # Automatically find the package and its subpackages
    packages=find_packages(exclude=['tests', 'tests.*']),

    # Runtime dependencies
    install_requires=[
        'requests>=2.25',
        'toml>=0.10.0',
        'colorama>=0.4.0',
        'PyYAML>=5.1',
    ],
    # Optional dependencies for testing and development
    extras_require={
        'test': [
            'pytest>=6.0',
        ],
        'dev': [
            'pytest>=6.0',
            'flake8',
        ],
    },

    # Define console entry point for the CLI
    entry_points={
        'console_scripts': [
            'sarif-issues=sarif_issues.cli:main',
        ],
    },

    include_package_data=True,
    zip_safe=False,
    python_requires='>=3.8',
    classifiers=[
        'Programming Language :: Python :: 3',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
    ],
)

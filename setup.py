import re
from setuptools import setup


def version():
    with open("tunespace/__init__.py") as fp:
        match = re.search(r"__version__\s*=\s*['\"]([^'\"]+)", fp.read())

    if not match:
        raise RuntimeError("unable to find __version__ string in __init__.py")

    return match[1]


def readme():
    with open("README.rst") as f:
        return f.read()


setup(
    name="tunespace",
    version=version(),
    description=("Search space and launch geometry engine for auto-tuning GPU kernels"),
    license="Apache 2.0",
    keywords="auto-tuning gpu computing opencl cuda gemm search space constraints",
    packages=[
        "tunespace",
        "tunespace.kernels",
        "tunespace.runners",
        "tunespace.strategies",
    ],
    package_data={"tunespace": ["schema/*.json"]},
    long_description=readme(),
    long_description_content_type="text/x-rst",
    classifiers=[
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: Apache Software License",
        "Natural Language :: English",
        "Operating System :: POSIX :: Linux",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Scientific/Engineering",
        "Topic :: Software Development",
        "Development Status :: 4 - Beta",
    ],
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.22",
        "jsonschema",
        "python-constraint2",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
        "dev": [
            "pytest>=7.0",
            "nox",
            "ruff",
        ],
    },
    entry_points={
        "console_scripts": [
            "tunespace = tunespace.cli:main",
        ],
    },
)

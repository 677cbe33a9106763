from setuptools import setup

setup(
    name="compoundacquire",
    version="0.1",
    packages=[
        "compoundacquire",
        "compoundacquire.acquisition",
        "compoundacquire.services",
    ],
    description="Acquire, deduplicate and rank the compounds measured in a set of assays.",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    python_requires=">=3.10",
    install_requires=[
        "rdkit",
        "requests",
        "tqdm",
        "urllib3",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-mock",
        ],
    },
)

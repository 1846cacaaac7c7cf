from setuptools import setup, find_packages

setup(
    name="crelu",
    version="0.1.0",
    description="Concatenated ReLU layer with explicit forward/backward for PyTorch tensors",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "torch>=1.9.0",
    ],
    extras_require={
        "test": ["pytest"],
    },
)

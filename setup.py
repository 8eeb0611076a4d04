from setuptools import setup, find_namespace_packages

setup(
    name="caller-trust-lab",
    version="0.1.0",
    description="Simulated crypto callers, balanced trust scores and score parameter optimization.",
    packages=find_namespace_packages(include=["caller_trust", "caller_trust.*"]),
    py_modules=["settings"],
    python_requires=">=3.9",
    install_requires=[
        "numpy",
        "pandas",
    ],
    extras_require={
        "test": ["pytest"],
    },
)

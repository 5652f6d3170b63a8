from setuptools import find_packages, setup

with open("README.md", "r") as fh:
    long_description = fh.read()

setup(
    name="dimproj",
    version="1.0.0a1",
    description="Projections (reductions) of N-dimensional, multi-channel arrays.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    include_package_data=True,
    python_requires=">=3.7",
    install_requires=["numpy>=1.17"],
    tests_require=["pytest"],
    extras_require={"test": ["pytest"]},
    entry_points={},
)

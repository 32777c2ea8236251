from setuptools import setup, find_packages

setup(
    name="sowfaview",
    version="0.1.0",
    packages=find_packages(exclude=["test", "test.*"]),
    install_requires=[
        "numpy",
        "scipy",
        "pandas",
        "openpyxl",
        "h5py",
    ],
    extras_require={
        "test": ["pytest"],
    },
    author="",
    author_email="",
    description="Probe and ABL profile analysis for wind simulation output",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.8",
    include_package_data=True,
)

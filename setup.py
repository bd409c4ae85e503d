# Copyright (C) 2020 FireEye, Inc. All Rights Reserved.

import setuptools

with open("README.md", "r", encoding="utf8") as fh:
    long_description = fh.read()

with open("tracehooks/version.py", encoding="utf8") as fp:
    vl = fp.readline()
    gv, ver_num = vl.split("=")
    if gv.strip() != "__version__":
        raise Exception("Invalid version file found")
    version = ver_num.strip().strip("\"'")

with open("requirements.txt", encoding="utf-8") as f:
    requirements = [line.strip() for line in f.readlines() if line.strip()]

setuptools.setup(
    name="tracehooks",
    description="Instruction-level trace hooks for instrumented WebAssembly binaries",
    version=version,
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=setuptools.find_packages(include=["tracehooks", "tracehooks.*"]),
    include_package_data=True,
    package_data={"tracehooks": ["config_schema.json", "configs/*.json"]},
    install_requires=requirements,
    extras_require={"test": ["pytest"]},
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.10",
    entry_points={"console_scripts": ["tracehooks=tracehooks.cli:main"]},
)

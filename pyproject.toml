[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "niftiviewer"
version = "0.1.0"
description = "Viewer for NIfTI MRI volumes and tumour masks, with image filters, statistics and video export"
requires-python = ">=3.10"
dependencies = [
    "numpy",
    "scipy",
    "pillow",
    "matplotlib",
]
keywords = ["nifti", "mri", "medical imaging", "segmentation", "viewer", "image filters"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: X11 Applications",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Healthcare Industry",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Medical Science Apps.",
    "Topic :: Scientific/Engineering :: Image Processing",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
niftiviewer = "niftiviewer.gui:main"

[tool.hatch.build.targets.wheel]
packages = ["niftiviewer"]

[tool.pytest.ini_options]
addopts = "-ra"

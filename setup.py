from setuptools import setup, find_packages
from pathlib import Path

setup(
    name="bbox_annotator",
    version=Path("./bbox_annotator/VERSION").read_text().strip(),
    packages=find_packages(include=["bbox_annotator", "bbox_annotator.*"]),
    package_data={"bbox_annotator": ["VERSION"]},
    install_requires=[
        "numpy",
        "opencv-python",
        "matplotlib",
        "easydict",
    ],
    extras_require={"test": ["pytest"]},
    python_requires=">=3.8",
)

from setuptools import setup, find_packages

setup(
    name="gallery-mirror",
    version="0.1",
    description="Mirror a remote folder/album photo gallery to local disk without redundant downloads",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=["requests>=2.0", "tqdm>=4.0"],
    extras_require={"test": ["pytest>=7.0"]},
    entry_points={
        "console_scripts": [
            "gallery-mirror=gallery_mirror.mirror:main",
        ]
    },
)

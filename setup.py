import setuptools

with open("romtag/.version") as f:
    version = f.read().strip()

setuptools.setup(
    name="romtag",
    version=version,
    python_requires=">=3.11.0",
    license="Apache-2.0",
    entry_points={"console_scripts": ["romtag = romtag.__main__:main"]},
    packages=["romtag"],
    package_data={"romtag": [".version"]},
    install_requires=[
        "appdirs",
        "click",
        "send2trash",
    ],
    extras_require={
        "test": ["pytest"],
    },
)

from setuptools import find_packages, setup

setup(
    name="cube-shell",
    version="0.1.0",
    description="Interactive shell for a remote content-addressed research filesystem",
    author="Daniel T Sasser II",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "requests>=2.31.0",
        "prompt_toolkit>=3.0.0",
        "cachetools>=5.0.0",
    ],
    entry_points={
        "console_scripts": [
            "cube-shell=cube_shell.__main__:main",
        ],
    },
    python_requires=">=3.10",
    extras_require={
        "dev": [
            "pytest",
            "build",
            "twine",
        ],
    },
)

"""
python -m build
twine upload dist/*
"""

from setuptools import setup, find_packages


def craftrest_setup():
    with open("requirements.txt", "rt") as fp:
        install_requires = fp.read().strip().split("\n")

    version = "0.4.0"

    setup(
        name="craftrest",
        packages=find_packages(exclude=["tests", "tests.*"]),
        version=version,
        license="MIT",
        description="craftrest : convention driven CRUD routes for FastAPI and SqlAlchemy",
        long_description=open("README.rst").read(),
        keywords=["SqlAlchemy", "FastAPI", "REST", "CRUD", "OpenAPI"],
        python_requires=">=3.8, <4",
        install_requires=install_requires,
        classifiers=[
            "Development Status :: 3 - Alpha",
            "License :: OSI Approved :: MIT License",
            "Intended Audience :: Developers",
            "Framework :: FastAPI",
            "Topic :: Software Development :: Libraries",
            "Environment :: Web Environment",
            "Programming Language :: Python :: 3",
        ],
        extras_require={"test": ["pytest>=7", "httpx>=0.24"]},
    )


craftrest_setup()  # pragma: no cover

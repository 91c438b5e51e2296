# coding=utf-8
from setuptools import setup

test_requirements = [
    "pytest-asyncio>=0.23",
    "black>=19.10b0",
    "codecov>=2.1.4",
    "flake8>=3.8.3",
    "flake8-debugger>=3.2.1",
    "pytest>=7.4.3",
    "pytest-cov>=2.9.0",
    "pytest-raises>=0.11",
]

dev_requirements = [
    *test_requirements,
    "bump2version>=1.0.1",
    "coverage>=5.1",
    "ipython>=7.15.0",
    "mypy>=1.7.1",
    "tox>=3.15.2",
    "twine>=3.1.1",
    "wheel>=0.34.2",
]

requirements = [
    "webcolors>=24.6.0",
    "httpx>=0.27.0",
    "fastapi>=0.110.0",
    "pydantic>=2.5.2",
    "uvicorn>=0.24.0",
    "mcp>=1.9.0,<2",
    "zeroconf>=0.131.0",
]


extra_requirements = {
    "test": test_requirements,
    "dev": dev_requirements,
    "all": [
        *requirements,
        *dev_requirements,
    ],
}


setup(
    name="nanoleaf_gateway",
    packages=["nanoleaf_gateway"],
    version="1.0.0",
    description="A REST and Model Context Protocol gateway for Nanoleaf light panels",
    license="LGPLv3+",
    include_package_data=True,
    package_data={"nanoleaf_gateway": ["py.typed"]},
    keywords=[
        "nanoleaf",
        "light panels",
        "light",
        "mcp",
    ],
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Other Environment",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: "
        + "GNU Lesser General Public License v3 or later (LGPLv3+)",
        "Operating System :: OS Independent",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Home Automation",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.10",
    extras_require=extra_requirements,
    entry_points={
        "console_scripts": ["nanoleaf_gateway = nanoleaf_gateway.gateway:main"]
    },
    install_requires=requirements,
)

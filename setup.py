from setuptools import setup, find_packages


setup(
    name="pkforge",
    version="0.1",
    packages=find_packages(),
    description="Build Apple Wallet .pkpass containers: staged zip writer, SHA-1 manifest, external signing.",
    author="vercingetorx",
    install_requires=[
        "pycryptodomex>=3.23.0",
    ],
    entry_points={
        "console_scripts": [
            "pkforge=pkforge.cli:main",
        ]
    },
)

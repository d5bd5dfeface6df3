from __future__ import annotations

import os

from setuptools import find_packages, setup

dependencies = [
    "cbor2>=5.4.6",  # Model artifact format
    "chia_rs>=0.5.2",  # Sized integer types for observation fields
    "click>=8.1.3",  # For the CLI
    "colorlog>=6.8.2",  # Adds color to logs
    "concurrent-log-handler>=0.9.25",  # Concurrently log and rotate logs
    "importlib_resources>=6.1.1",  # Packaged model bundles and initial config
    "numpy>=1.24.0",  # Normalization and dense layer inference
    "PyYAML>=6.0.1",  # Used for config and test vector file format
    "sortedcontainers>=2.4.0",  # Fee bucket limit lookup
    "typing-extensions>=4.10.0",  # typing backports like Protocol and final
]

dev_dependencies = [
    "build==1.0.3",
    "coverage==7.4.1",
    "pylint==3.0.3",
    "pytest==8.0.2",
    "pytest-cov==4.1.0",
    "pytest-mock==3.12.0",
    "pytest-xdist==3.5.0",
    "isort==5.13.2",
    "flake8==7.0.0",
    "mypy==1.8.0",
    "black==23.12.1",
    "types-pyyaml==6.0.12.12",
    "types-setuptools==69.1.0.20240217",
]

kwargs = dict(
    name="bitcoin-fee-model",
    description="Bitcoin fee estimation from pre-trained neural network model bundles.",
    license="Apache License",
    python_requires=">=3.10, <4",
    keywords="bitcoin fee estimation neural network",
    install_requires=dependencies,
    extras_require=dict(
        dev=dev_dependencies,
    ),
    packages=find_packages(include=["bitcoin_fee_model", "bitcoin_fee_model.*"]),
    entry_points={
        "console_scripts": [
            "bitcoin_fee_model = bitcoin_fee_model.cmds.fee_model:main",
        ]
    },
    package_data={
        "bitcoin_fee_model": ["models/*/model.cbor", "models/*/test_vectors.yaml", "py.typed"],
        "bitcoin_fee_model.util": ["initial-*.yaml"],
    },
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    zip_safe=False,
)

if len(os.environ.get("BITCOIN_FEE_MODEL_SKIP_SETUP", "")) < 1:
    setup(**kwargs)  # type: ignore

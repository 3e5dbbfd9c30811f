from setuptools import find_packages, setup

setup(
    name="secrets-consumer-env",
    version="0.1.0",
    license="Apache License 2.0",

    python_requires=">=3.11",
    description="Fetch secrets from Vault, AWS or GCP secret managers and "
                "inject them into the environment of a command.",

    packages=find_packages(exclude=('*.test',)),

    install_requires=[
        "sretoolbox~=2.5",
        "Click>=8.0,<9.0",
        "toml>=0.10.0,<0.11.0",
        "hvac>=2.1.0,<3.0.0",
        "requests>=2.31,<3.0",
        "boto3>=1.34,<2.0",
        "botocore>=1.34,<2.0",
        "google-auth>=2.20,<3.0",
        "google-api-core>=2.11,<3.0",
        "google-cloud-secret-manager>=2.16,<3.0",
        "sentry-sdk>=2.0,<3.0",
        "pydantic>=2.5,<3.0",
    ],

    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-mock>=3.11",
            "moto[secretsmanager,sts]>=5.0",
        ],
    },

    test_suite="secrets_consumer.test",

    classifiers=[
        'Development Status :: 2 - Pre-Alpha',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.11',
    ],
    entry_points={
        'console_scripts': [
            'secrets-consumer-env = secrets_consumer.cli:root',
        ],
    },
)

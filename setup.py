"""Install the key-value session store package."""

from setuptools import setup, find_packages

setup(
    name='kvsession',
    version='0.1.0',
    packages=find_packages(exclude=['*test*']),
    install_requires=[
        "boto3",
        "cryptography",
        "flask",
        "pyjwt>=2",
        "python-dateutil",
        "python-json-logger",
        "pytz",
        "redis>=4.1",
        "werkzeug>=2.3",
    ],
    extras_require={
        "test": ["pytest"],
    },
    zip_safe=False
)

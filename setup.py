"""Install the aip-front users package."""

from setuptools import setup, find_packages

setup(
    name='aip-front-users',
    version='0.1.0',
    packages=find_packages(exclude=['*test*']),
    install_requires=[
        "flask",
        "flask-sqlalchemy",
        "sqlalchemy",
        "python-dateutil",
        "pytz",
        "retry",
        "click",
        "python-json-logger",
    ],
    extras_require={
        'test': [
            "pytest",
            "hypothesis",
        ]
    },
    entry_points={
        'console_scripts': ['aipfront=aipfront.cli:main'],
    },
    zip_safe=False
)

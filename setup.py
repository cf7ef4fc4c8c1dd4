#!/usr/bin/env python

import io

from setuptools import setup, find_packages

with io.open('README.rst') as f:
    readme = f.read()

setup(
    name='sqlacursor',
    version='0.1.0',
    description='cursor-based keyset pagination for sqlalchemy',
    long_description=readme,
    install_requires=[
        'sqlalchemy>=1.4.40',
        'python-dateutil'
    ],
    extras_require={
        'test': [
            'pytest',
            'sqlbag',
            'pytz',
            'arrow'
        ]
    },
    python_requires='>=3.8',
    zip_safe=False,
    packages=find_packages(exclude=['tests']),
    classifiers=[
    ]
)

#!/usr/bin/env python

"""The setup script."""
import os.path

from setuptools import setup, find_packages


def _read_file(file: str) -> str:
    # we only needs these files if we're publishing
    if os.path.exists(file):
        with open(file) as f:
            return f.read()
    else:
        return 'N/A'


readme = _read_file('README.md')
version = _read_file('version.txt').strip()

requirements = [
    'PyYAML>=6.0.0,<7.0.0',
    'pydantic>=2.0.0,<3.0.0',
    'typing_extensions>=4.0.0',
]

test_requirements = [
    'pytest>=7.0.0',
]

setup(
    python_requires='>=3.8',
    classifiers=[
        'Development Status :: 2 - Pre-Alpha',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: Apache Software License',
        'Natural Language :: English',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
    ],
    description="Convert protobuf-like text to JSON",
    entry_points={
        'console_scripts': [
            'pb2json=pb_to_json.cli:main',
        ],
    },
    install_requires=requirements,
    extras_require={
        'test': test_requirements,
    },
    license="Apache Software License 2.0",
    long_description=readme,
    long_description_content_type='text/markdown',
    include_package_data=True,
    keywords='pb_to_json,pb2json,protobuf,text format,json,yaml',
    name='pb_to_json',
    packages=find_packages(include=['pb_to_json', 'pb_to_json.*']),
    version=version,
    zip_safe=False,
)

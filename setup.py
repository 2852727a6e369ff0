#!/usr/bin/env python
# -*- coding: utf-8 -*-

from setuptools import setup

import os.path

version_py = os.path.join(os.path.dirname(__file__), 'kilnheaders',
                          'version.py')
with open(version_py, 'r') as f:
    d = dict()
    exec(f.read(), d)
    version = d['__version__']

setup(
    name = 'kilnheaders',
    description = 'Header synthesis for C projects',
    version = version,
    long_description = '''kilnheaders recovers the user defined types (structs,
unions, enums, typedefs, function pointer types, nested and anonymous
composites, bit-fields, flexible array members) and the externally visible
function signatures of C implementation files, and uses them to generate or
update the matching header files. Only a managed region of each header is
rewritten, so hand written content survives regeneration.''',
    author = 'kilnheaders Developers',
    keywords = 'C header generation build',
    license = 'MIT',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Environment :: Console',
        'License :: OSI Approved :: MIT License',
        'Natural Language :: English',
        'Operating System :: OS Independent',
        'Topic :: Software Development :: Build Tools',
        'Topic :: Software Development :: Code Generators',
        'Programming Language :: C',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3 :: Only',
        ],
    zip_safe = False,
    packages = ['kilnheaders'],
    python_requires = '>=3.11',
    install_requires = ['pyparsing>=3.0'],
    extras_require = {'test': ['pytest']},
    entry_points = {
        'console_scripts': ['kiln-headers = kilnheaders.cli:main'],
    },
)

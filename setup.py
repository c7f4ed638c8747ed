"""Setup script for miniml."""
from setuptools import setup, find_packages  # type: ignore
import miniml

setup(
    name='miniml',
    version=miniml.version,
    description='Type inference for a small ML with units of measure',
    long_description=open('README.md').read(),
    long_description_content_type='text/markdown',
    license='MIT',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Topic :: Software Development :: Compilers',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3.12',
    ],
    keywords='type-inference hindley-milner ml',
    packages=find_packages(),  # type: ignore
    python_requires='>=3.12',
    install_requires=[
        'parsy>=1.3.0,<3',
        'typing-extensions>=4',
    ],
    entry_points={'console_scripts': ['miniml=miniml.__main__:main']},
    extras_require={
        'test': [
            'coverage>=6.4.4',
            'hypothesis>=6',
            'scripttest',
        ],
        'dev': ['mypy>=1.1.1'],
    },
)

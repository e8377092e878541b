"""Setup sctpm package

"""

from os import path

from setuptools import find_packages, setup

_here = path.abspath(path.dirname(__file__))

version = {}
with open(path.join(_here, 'sctpm', '__init__.py')) as fh:
    for line in fh:
        if line.startswith('__version__'):
            exec(line, version)

setup(
    name='sctpm',
    version=version['__version__'],
    description='Exon-length aware TPM normalization of single-cell count matrices',
    license='MIT',
    python_requires='>=3.9',
    packages=find_packages(),
    package_data={
        'sctpm': ['data/*.gtf', 'data/*.tsv'],
    },
    install_requires=[
        'numpy',
        'scipy',
        'pandas',
        'intervaltree',
        'pyyaml',
    ],
    extras_require={
        'analysis': [
            'scanpy',
            'anndata',
            'louvain>=0.8.2',
            'leidenalg<0.11',
            'scanorama',
        ],
        'test': [
            'pytest',
        ],
    },
    entry_points={
        'console_scripts': [
            'sctpm=sctpm.__main__:main',
        ],
    },
)

# -*- coding: utf-8 -*-

# This file is part of sctpm.
#
# Licensed under MIT License.

"""Reading and writing gene-by-cell matrices.

Supported count inputs:

- delimited text, genes in rows and cells in columns, with or without a
  header row of cell names (R ``write.table`` files whose header lacks the
  row-name field are handled too)
- featureCounts output (``#`` command line, then ``Geneid Chr Start End
  Strand Length`` followed by one column per sample)
- Matrix Market (``matrix.mtx`` beside ``features.tsv``/``genes.tsv`` and
  ``barcodes.tsv``)
"""
import gzip
import logging as lg
import os

import numpy as np
import pandas as pd
import scipy.io

from .normalize import NormalizationError, check_counts

FEATURECOUNTS_COLS = ['Geneid', 'Chr', 'Start', 'End', 'Strand', 'Length']


def _strip_gz(path):
    return path[:-3] if path.endswith('.gz') else path


def delimiter_for(path):
    """Comma for ``.csv`` files, tab for everything else."""
    return ',' if _strip_gz(str(path)).endswith('.csv') else '\t'


def _open_text(path):
    if str(path).endswith('.gz'):
        return gzip.open(path, 'rt')
    return open(path)


def _peek(path, n=2):
    """Count leading comment lines and return the next ``n`` lines."""
    nskip = 0
    lines = []
    with _open_text(path) as fh:
        for line in fh:
            if not lines and line.startswith('#'):
                nskip += 1
                continue
            if not line.strip():
                continue
            lines.append(line.rstrip('\r\n'))
            if len(lines) >= n:
                break
    return nskip, lines


def _is_number(s):
    try:
        float(s)
    except ValueError:
        return False
    return True


def _sample_name(path):
    name = os.path.basename(path)
    for suffix in ('Aligned.sortedByCoord.out.bam', '.bam', '.sam'):
        if name.endswith(suffix) and len(name) > len(suffix):
            return name[:-len(suffix)]
    return name


def read_counts(path, sep=None, validate=True):
    """Load a raw count matrix.

    Args:
        path (str): Count file.
        sep (str): Field delimiter. Guessed from the extension if None.
        validate (bool): Check the matrix with :func:`validate_counts`.

    Returns:
        (pandas.DataFrame): Genes x cells counts indexed by gene identifier.
    """
    path = str(path)
    if not os.path.exists(path):
        raise FileNotFoundError(f'Count file not found: {path}')
    if _strip_gz(path).endswith('.mtx'):
        df = read_mtx(path)
    else:
        df = _read_delimited(path, sep or delimiter_for(path))

    df.index = df.index.astype(str)
    df.columns = df.columns.astype(str)
    df.index.name = 'gene_id'
    lg.info(f'Loaded {df.shape[0]:,} genes x {df.shape[1]:,} cells from {os.path.basename(path)}')
    if validate:
        validate_counts(df)
    return df


def _read_delimited(path, sep):
    nskip, lines = _peek(path)
    if not lines:
        raise NormalizationError(f'Count file {path} is empty')
    first = lines[0].split(sep)

    if first[:len(FEATURECOUNTS_COLS)] == FEATURECOUNTS_COLS:
        lg.debug('Detected featureCounts output')
        df = pd.read_csv(path, sep=sep, skiprows=nskip, header=0, index_col=0)
        df = df.drop(columns=FEATURECOUNTS_COLS[1:])
        df.columns = [_sample_name(c) for c in df.columns]
        return df

    if len(first) > 1 and all(_is_number(v) for v in first[1:]):
        lg.debug('No header row; naming cells by position')
        df = pd.read_csv(path, sep=sep, skiprows=nskip, header=None, index_col=0)
        df.columns = [f'cell_{i + 1}' for i in range(df.shape[1])]
        return df

    if len(lines) > 1 and len(lines[1].split(sep)) == len(first) + 1:
        # Header row has no field for the gene column; pandas uses the first
        # column as the index on its own
        return pd.read_csv(path, sep=sep, skiprows=nskip, header=0)

    return pd.read_csv(path, sep=sep, skiprows=nskip, header=0, index_col=0)


def _find_sibling(dirname, names):
    for name in names:
        for candidate in (name, name + '.gz'):
            fn = os.path.join(dirname, candidate)
            if os.path.exists(fn):
                return fn
    raise FileNotFoundError(f'None of {names} found in {dirname}')


def read_mtx(path, gene_column=0):
    """Read a Matrix Market count matrix with its gene and barcode files.

    Args:
        path (str): Path to ``matrix.mtx`` (optionally gzipped).
        gene_column (int): Column of the features file used as gene id.
    """
    dirname = os.path.dirname(os.path.abspath(path))
    name = os.path.basename(_strip_gz(path))
    prefix = name[:-len('matrix.mtx')] if name.endswith('matrix.mtx') else ''
    genes_fn = _find_sibling(dirname, [prefix + 'features.tsv', prefix + 'genes.tsv'])
    barcodes_fn = _find_sibling(dirname, [prefix + 'barcodes.tsv'])

    mat = scipy.io.mmread(path)
    genes = pd.read_csv(genes_fn, sep='\t', header=None, dtype=str)[gene_column]
    barcodes = pd.read_csv(barcodes_fn, sep='\t', header=None, dtype=str)[0]
    if mat.shape != (len(genes), len(barcodes)):
        raise NormalizationError(
            f'Matrix shape {mat.shape} does not match {len(genes)} genes x {len(barcodes)} barcodes'
        )
    dense = mat.toarray() if hasattr(mat, 'toarray') else np.asarray(mat)
    return pd.DataFrame(dense, index=genes.values, columns=barcodes.values)


def validate_counts(df):
    """Check a count matrix before it is normalized.

    Raises:
        NormalizationError: see :func:`sctpm.core.normalize.check_counts`.
    """
    check_counts(df)
    if df.empty:
        raise NormalizationError('Count matrix has no genes or no cells')
    values = df.to_numpy(dtype=np.float64)
    if not np.array_equal(values, np.round(values)):
        lg.warning('Counts contain non-integer values; were they already normalized?')


def write_matrix(df, path, float_format=None):
    """Write a genes x cells matrix in delimited text."""
    df.to_csv(path, sep=delimiter_for(path), float_format=float_format,
              index_label=df.index.name or 'gene_id', na_rep='NaN')
    lg.info(f'Wrote {df.shape[0]:,} x {df.shape[1]:,} matrix to {path}')


def read_lengths(path):
    """Read a two-column gene -> length table as an integer Series."""
    df = pd.read_csv(path, sep=delimiter_for(path), header=0, index_col=0)
    s = df.iloc[:, 0]
    s.index = s.index.astype(str)
    s.name = 'length'
    return s


def write_lengths(lengths, path):
    s = pd.Series(lengths, name='length', dtype=np.int64)
    s.index.name = 'gene_id'
    s.to_csv(path, sep=delimiter_for(path), header=True)

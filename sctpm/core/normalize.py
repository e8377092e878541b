# -*- coding: utf-8 -*-

# This file is part of sctpm.
#
# Licensed under MIT License.

"""Length and depth normalization of gene-by-cell count matrices.

Computes TPM, RPKM and CPM. Gene lengths are joined to the count matrix by
gene identifier, never by position, and cells whose counts are all zero are
reported as degenerate instead of being emitted as normalized data.
"""
import logging as lg
from dataclasses import asdict, dataclass, replace

import numpy as np
import pandas as pd

SCALE = 1e6


class NormalizationError(ValueError):
    """Input that cannot be normalized without corrupting the output."""


@dataclass(frozen=True)
class RestrictionReport:
    """Genes kept and dropped when joining counts with gene lengths."""
    n_count_genes: int
    n_length_genes: int
    only_in_counts: tuple
    only_in_lengths: tuple
    zero_length: tuple
    kept: tuple

    @property
    def n_kept(self):
        return len(self.kept)

    @property
    def n_dropped(self):
        return len(self.only_in_counts) + len(self.zero_length)

    def to_dict(self):
        return {k: list(v) if isinstance(v, tuple) else v for k, v in asdict(self).items()}

    @classmethod
    def from_dict(cls, d):
        return cls(**{k: tuple(v) if isinstance(v, list) else v for k, v in d.items()})


@dataclass(frozen=True)
class NormalizedMatrix:
    """Normalized expression with the bookkeeping of how it was produced."""
    matrix: pd.DataFrame          # genes x cells, degenerate cells are NaN
    units: str                    # 'TPM', 'RPKM' or 'CPM'
    degenerate_cells: tuple       # cells with no counts on kept genes
    report: RestrictionReport = None
    cached: bool = False          # loaded from an ArtifactCache

    @property
    def valid(self):
        """Matrix without degenerate cells."""
        return self.matrix.drop(columns=list(self.degenerate_cells), errors='ignore')

    @classmethod
    def from_matrix(cls, matrix, units, report=None, cached=False):
        """Rebuild from a stored matrix; all-NaN columns are the degenerate cells."""
        degenerate = tuple(matrix.columns[matrix.isna().all(axis=0).to_numpy()])
        return cls(matrix=matrix, units=units, degenerate_cells=degenerate, report=report, cached=cached)

    def without_degenerate(self):
        return replace(self, matrix=self.valid)


def check_counts(counts):
    """Fail fast on count matrices that cannot be normalized.

    Raises:
        NormalizationError: Duplicate keys, non-numeric, missing, infinite or
            negative values.
    """
    if not isinstance(counts, pd.DataFrame):
        raise NormalizationError(f'Expected a pandas DataFrame of counts, got {type(counts).__name__}')
    if counts.index.has_duplicates:
        dups = counts.index[counts.index.duplicated()].unique()
        raise NormalizationError(f'Duplicate gene identifiers in counts: {list(dups[:5])}')
    if counts.columns.has_duplicates:
        dups = counts.columns[counts.columns.duplicated()].unique()
        raise NormalizationError(f'Duplicate cell identifiers in counts: {list(dups[:5])}')

    bad = [c for c, t in counts.dtypes.items() if not pd.api.types.is_numeric_dtype(t)]
    if bad:
        raise NormalizationError(f'Non-numeric counts in cell(s): {bad[:5]}')
    values = counts.to_numpy(dtype=np.float64)
    if np.isnan(values).any():
        raise NormalizationError('Counts contain missing values')
    if np.isinf(values).any():
        rows, cols = np.nonzero(np.isinf(values))
        raise NormalizationError(
            f'Infinite count for gene {counts.index[rows[0]]!r}, cell {counts.columns[cols[0]]!r}'
        )
    if (values < 0).any():
        rows, cols = np.nonzero(values < 0)
        raise NormalizationError(
            f'Negative count {values[rows[0], cols[0]]} for gene {counts.index[rows[0]]!r}, '
            f'cell {counts.columns[cols[0]]!r}'
        )


def as_length_series(lengths):
    """Coerce a gene -> length mapping into a float Series."""
    if isinstance(lengths, pd.Series):
        s = lengths.copy()
    else:
        s = pd.Series(dict(lengths), dtype=object)
    if s.index.has_duplicates:
        dups = s.index[s.index.duplicated()].unique()
        raise NormalizationError(f'Duplicate gene identifiers in lengths: {list(dups[:5])}')
    try:
        s = pd.to_numeric(s, errors='raise').astype(np.float64)
    except (TypeError, ValueError) as exc:
        raise NormalizationError(f'Non-numeric gene length: {exc}') from exc
    if not np.isfinite(s.to_numpy()).all():
        raise NormalizationError('Gene lengths must be finite')
    return s


def restrict_to_lengths(counts, lengths):
    """Restrict counts and lengths to the genes they share.

    The returned length Series is indexed exactly like the returned count
    rows.

    Args:
        counts (pandas.DataFrame): Genes x cells raw counts.
        lengths: Mapping or Series of gene -> effective length.

    Returns:
        (pandas.DataFrame, pandas.Series, RestrictionReport)

    Raises:
        NormalizationError: Malformed input or no genes left.
    """
    check_counts(counts)
    lengths = as_length_series(lengths)

    in_lengths = counts.index.isin(lengths.index)
    shared = counts.index[in_lengths]
    only_in_counts = tuple(counts.index[~in_lengths])
    only_in_lengths = tuple(lengths.index[~lengths.index.isin(counts.index)])

    shared_lengths = lengths.reindex(shared)
    nonpos = shared_lengths.to_numpy() <= 0
    zero_length = tuple(shared[nonpos])
    if zero_length:
        lg.warning(f'Excluding {len(zero_length)} gene(s) with non-positive length (e.g. {zero_length[0]})')
    kept = shared[~nonpos]

    if len(kept) == 0:
        raise NormalizationError(
            f'No genes shared between counts ({counts.shape[0]} genes) and '
            f'gene lengths ({len(lengths)} genes); check gene identifier naming'
        )

    report = RestrictionReport(
        n_count_genes=counts.shape[0],
        n_length_genes=len(lengths),
        only_in_counts=only_in_counts,
        only_in_lengths=only_in_lengths,
        zero_length=zero_length,
        kept=tuple(kept),
    )
    lg.info(f'Kept {report.n_kept:,} of {report.n_count_genes:,} genes in counts '
            f'({len(only_in_counts):,} without a length, {len(only_in_lengths):,} lengths without counts)')
    if report.n_dropped > report.n_kept:
        lg.warning(f'More than half of the count genes were dropped ({report.n_dropped:,} of '
                   f'{report.n_count_genes:,}); gene identifiers may not match the annotation')

    return counts.loc[kept], lengths.reindex(kept), report


def _per_cell_scale(values, totals, index, columns, units, report, drop_degenerate):
    degenerate = totals <= 0
    with np.errstate(divide='ignore', invalid='ignore'):
        scaled = values * SCALE / totals[np.newaxis, :]
    scaled[:, degenerate] = np.nan

    matrix = pd.DataFrame(scaled, index=index, columns=columns)
    bad_cells = tuple(columns[degenerate])
    if bad_cells:
        lg.warning(f'{len(bad_cells)} cell(s) have no counts on the kept genes and cannot be '
                   f'normalized (e.g. {bad_cells[0]})')
    ret = NormalizedMatrix(matrix=matrix, units=units, degenerate_cells=bad_cells, report=report)
    return ret.without_degenerate() if drop_degenerate else ret


def counts_to_tpm(counts, lengths, drop_degenerate=False):
    """Convert raw counts to transcripts per million.

    rate = count / length, then each cell's rates are scaled to sum to one
    million.

    Args:
        counts (pandas.DataFrame): Genes x cells raw counts.
        lengths: Mapping or Series of gene -> effective length.
        drop_degenerate (bool): Remove all-zero cells instead of keeping
            them as NaN columns.

    Returns:
        NormalizedMatrix
    """
    counts, lengths, report = restrict_to_lengths(counts, lengths)
    values = counts.to_numpy(dtype=np.float64)
    rate = values / lengths.to_numpy(dtype=np.float64)[:, np.newaxis]
    return _per_cell_scale(rate, rate.sum(axis=0), counts.index, counts.columns,
                           'TPM', report, drop_degenerate)


def counts_to_rpkm(counts, lengths, drop_degenerate=False):
    """Reads per kilobase per million mapped reads.

    Library size is taken over every gene in ``counts``, before the join
    with ``lengths``.
    """
    check_counts(counts)
    library = counts.to_numpy(dtype=np.float64).sum(axis=0)
    counts, lengths, report = restrict_to_lengths(counts, lengths)
    values = counts.to_numpy(dtype=np.float64)
    rate = values / (lengths.to_numpy(dtype=np.float64)[:, np.newaxis] / 1000.0)
    return _per_cell_scale(rate, library, counts.index, counts.columns,
                           'RPKM', report, drop_degenerate)


def counts_to_cpm(counts, drop_degenerate=False):
    """Counts per million, no length correction."""
    check_counts(counts)
    values = counts.to_numpy(dtype=np.float64)
    return _per_cell_scale(values, values.sum(axis=0), counts.index, counts.columns,
                           'CPM', None, drop_degenerate)


NORMALIZERS = {
    'tpm': counts_to_tpm,
    'rpkm': counts_to_rpkm,
    'cpm': lambda counts, lengths, drop_degenerate=False: counts_to_cpm(counts, drop_degenerate),
}

# This file is part of sctpm.
#
# Licensed under MIT License.

"""File-to-file normalization with optional caching of intermediate artifacts."""

import json
import logging as lg
import os
from dataclasses import replace

import pandas as pd

from .. import __version__
from ..annotation import ExonAnnotation
from .counts import read_counts, read_lengths, write_lengths, write_matrix
from .normalize import NORMALIZERS, NormalizedMatrix, RestrictionReport


def _as_list(values):
    return None if values is None else sorted(values)


def annotation_lengths(gtffile, attribute='gene_id', biotypes=('protein_coding',),
                       spikein_sources=('ERCC',), cache=None):
    """Effective exonic gene lengths for a GTF file.

    Args:
        gtffile (str): Annotation in GTF format.
        attribute (str): GTF attribute naming the gene.
        biotypes: Biotypes to keep, or None for all.
        spikein_sources: GTF sources kept regardless of biotype.
        cache (ArtifactCache): Optional artifact cache.

    Returns:
        (pandas.Series): Gene -> length, integer valued.
    """
    if not os.path.exists(gtffile):
        raise FileNotFoundError(f'Annotation file not found: {gtffile}')

    def _compute():
        annot = ExonAnnotation(gtffile, attribute, biotypes=biotypes, spikein_sources=spikein_sources)
        lg.info(f'Loaded {len(annot):,} genes from {os.path.basename(gtffile)}')
        s = pd.Series(annot.feature_length(), name='length', dtype='int64')
        s.index.name = 'gene_id'
        return s

    if cache is None:
        return _compute()

    params = {
        'attribute': attribute,
        'biotypes': _as_list(biotypes),
        'spikein_sources': _as_list(spikein_sources),
        'version': __version__,
    }
    lengths, _ = cache.get_or_compute('gene_lengths', [gtffile], params,
                                      _compute, write_lengths, read_lengths)
    return lengths


def _read_stored_matrix(path):
    df = pd.read_csv(path, sep='\t', index_col=0, float_precision='round_trip')
    df.index = df.index.astype(str)
    df.columns = df.columns.astype(str)
    return df


def _dump_report(report, path):
    with open(path, 'w') as outh:
        json.dump(report.to_dict(), outh, indent=1)


def _load_report(path):
    with open(path) as fh:
        return RestrictionReport.from_dict(json.load(fh))


def normalize_files(countfile, gtffile, units='tpm', attribute='gene_id',
                    biotypes=('protein_coding',), spikein_sources=('ERCC',),
                    sep=None, drop_degenerate=False, cache=None):
    """Normalize a count file against the gene lengths of a GTF file.

    Returns:
        (NormalizedMatrix, pandas.Series): Normalized matrix and the gene
        lengths used. The restriction report is cached next to the matrix,
        so a cached result carries the same report as a computed one.
    """
    if units not in NORMALIZERS:
        raise ValueError(f'Unknown units "{units}". Choose from {sorted(NORMALIZERS)}')
    if not os.path.exists(countfile):
        raise FileNotFoundError(f'Count file not found: {countfile}')

    lengths = annotation_lengths(gtffile, attribute, biotypes, spikein_sources, cache=cache)

    def _compute():
        counts = read_counts(countfile, sep=sep)
        return NORMALIZERS[units](counts, lengths)

    if cache is None:
        result = _compute()
    else:
        params = {
            'units': units,
            'attribute': attribute,
            'biotypes': _as_list(biotypes),
            'spikein_sources': _as_list(spikein_sources),
            'sep': sep,
            'version': __version__,
        }
        result, hit = cache.get_or_compute(
            units, [countfile, gtffile], params, _compute,
            lambda res, path: write_matrix(res.matrix, path),
            lambda path: NormalizedMatrix.from_matrix(_read_stored_matrix(path), units.upper(), cached=True),
        )
        # CPM has no length join and so no restriction report
        if units != 'cpm':
            report, _ = cache.get_or_compute(
                f'{units}_report', [countfile, gtffile], params,
                lambda: result.report if result.report is not None else _compute().report,
                _dump_report, _load_report, ext='json',
            )
            result = replace(result, report=report)
        if hit and result.degenerate_cells:
            lg.warning(f'{len(result.degenerate_cells)} cached cell(s) are degenerate')

    if drop_degenerate:
        result = result.without_degenerate()
    return result, lengths

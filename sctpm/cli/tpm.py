# -*- coding: utf-8 -*-

# This file is part of sctpm.
#
# Licensed under MIT License.

""" sctpm tpm

"""
import os
from time import time
import logging as lg

from . import REPORTING_OPTS, SubcommandOptions, configure_logging, split_list
from .console import Stopwatch
from ..core.counts import write_lengths, write_matrix
from ..core.pipeline import normalize_files
from ..utils.cache import ArtifactCache
from ..utils.helpers import format_minutes as fmtmins


ANNOTATION_OPTS = """
        - attribute:
            default: gene_id
            help: GTF attribute that identifies a gene. Exons sharing the
                  same value are merged into one gene.
        - biotypes:
            default: protein_coding
            help: Comma-separated biotypes to keep, or "all".
        - spikein_sources:
            default: ERCC
            help: Comma-separated GTF sources (column 2) kept regardless of
                  biotype, e.g. spike-in controls. Use "none" to disable.
"""


class TPMOptions(SubcommandOptions):

    OPTS = """
    - Input Options:
        - countfile:
            positional: True
            help: Gene-by-cell count matrix (TSV/CSV, featureCounts output,
                  or Matrix Market matrix.mtx).
        - gtffile:
            positional: True
            help: Genome annotation (GTF format).
        - sep:
            help: Field delimiter of the count file. Guessed from the file
                  extension if omitted.
""" + ANNOTATION_OPTS + """
    - Output Options:
        - outdir:
            default: .
            help: Output directory.
        - exp_tag:
            default: sctpm
            help: Experiment tag, used as prefix of output files.
        - units:
            default: tpm
            choices:
                - tpm
                - rpkm
                - cpm
            help: Normalized units to compute.
        - drop_degenerate:
            action: store_true
            help: Remove cells without counts on any kept gene instead of
                  writing them as NaN columns.
        - decimals:
            type: int
            help: Round values to this many decimals in the output.
    - Cache Options:
        - cachedir:
            help: Directory for cached gene lengths and normalized
                  matrices. Defaults to OUTDIR/.sctpm_cache.
        - no_cache:
            action: store_true
            help: Always recompute.
""" + REPORTING_OPTS

    def __init__(self, args):
        super().__init__(args)
        if getattr(self, 'cachedir', None) is None:
            self.cachedir = os.path.join(self.outdir, '.sctpm_cache')


def run(args):
    """Normalize a count matrix against GTF-derived gene lengths.

    Args:
        args: Parsed argparse namespace.
    """
    opts = TPMOptions(args)
    console = configure_logging(opts)
    lg.info('\n{}\n'.format(opts))
    total_time = time()
    stopwatch = Stopwatch()

    console.banner(opts.version)
    console.section('Input')
    console.item('Counts', os.path.basename(opts.countfile))
    console.item('Annotation', os.path.basename(opts.gtffile))
    console.item('Units', opts.units.upper())
    console.blank()

    os.makedirs(opts.outdir, exist_ok=True)
    cache = None if opts.no_cache else ArtifactCache(opts.cachedir)

    stopwatch.start('Normalize')
    result, lengths = normalize_files(
        opts.countfile, opts.gtffile,
        units=opts.units,
        attribute=opts.attribute,
        biotypes=split_list(opts.biotypes),
        spikein_sources=split_list(opts.spikein_sources) or (),
        sep=opts.sep,
        drop_degenerate=opts.drop_degenerate,
        cache=cache,
    )
    stopwatch.stop()

    console.status('Normalized {:,} genes x {:,} cells{}'.format(
        *result.matrix.shape, ', loaded from cache' if result.cached else ''))
    if result.report is not None:
        console.restriction(result.report, result.cached)
    console.degenerate(result.degenerate_cells, opts.drop_degenerate)
    console.blank()

    stopwatch.start('Write')
    outputs = []
    matrix = result.matrix.round(opts.decimals) if opts.decimals is not None else result.matrix
    fn = opts.outfile_path('%s.tsv' % opts.units)
    write_matrix(matrix, fn)
    outputs.append(fn)

    fn = opts.outfile_path('gene_lengths.tsv')
    write_lengths(lengths, fn)
    outputs.append(fn)

    if result.degenerate_cells:
        fn = opts.outfile_path('degenerate_cells.txt')
        with open(fn, 'w') as outh:
            for cell in result.degenerate_cells:
                print(cell, file=outh)
        outputs.append(fn)

    if result.report is not None and result.report.only_in_counts:
        fn = opts.outfile_path('genes_without_length.txt')
        with open(fn, 'w') as outh:
            for gene in result.report.only_in_counts:
                print(gene, file=outh)
        outputs.append(fn)
    stopwatch.stop()

    console.section('Output')
    for fn in outputs:
        console.output_file(os.path.relpath(fn))
    console.blank()
    console.timing_table(stopwatch)
    console.blank()
    lg.info("sctpm tpm complete (%s)" % fmtmins(time() - total_time))
    return result

# This file is part of sctpm.
#
# Licensed under MIT License.

""" sctpm analyze

"""
import os
from time import time
import logging as lg

from . import REPORTING_OPTS, SubcommandOptions, configure_logging
from .console import Stopwatch
from ..core.counts import read_counts
from ..utils.helpers import format_minutes as fmtmins


class AnalyzeOptions(SubcommandOptions):

    OPTS = """
    - Input Options:
        - matrix:
            positional: True
            help: Genes x cells expression matrix, e.g. the output of
                  "sctpm tpm". All-NaN (degenerate) cells are dropped.
        - markers:
            help: YAML file of marker gene sets, cell type -> list of genes.
    - Output Options:
        - outdir:
            default: .
            help: Output directory.
        - exp_tag:
            default: sctpm
            help: Experiment tag, used as prefix of output files.
    - QC Options:
        - min_genes:
            type: int
            default: 200
            help: Minimum detected genes per cell.
        - min_cells:
            type: int
            default: 3
            help: Minimum cells a gene must be detected in.
        - max_pct_mito:
            type: float
            help: Maximum mitochondrial percentage per cell.
    - Embedding Options:
        - n_top_genes:
            type: int
            default: 2000
            help: Number of highly variable genes.
        - n_pcs:
            type: int
            default: 30
            help: Number of principal components.
        - n_neighbors:
            type: int
            default: 15
            help: Neighbors in the kNN graph.
        - resolution:
            type: float
            default: 1.0
            help: Clustering resolution.
        - method:
            default: louvain
            choices:
                - louvain
                - leiden
            help: Community detection algorithm.
        - seed:
            type: int
            default: 0
            help: Random seed.
""" + REPORTING_OPTS


def run(args):
    """QC, embed and cluster a normalized matrix; optionally score markers."""
    from ..analysis import workflow

    opts = AnalyzeOptions(args)
    console = configure_logging(opts)
    lg.info('\n{}\n'.format(opts))
    total_time = time()
    stopwatch = Stopwatch()

    console.banner(opts.version, 'Single-cell analysis')
    os.makedirs(opts.outdir, exist_ok=True)

    stopwatch.start('Load')
    matrix = read_counts(opts.matrix, validate=False)
    degenerate = matrix.columns[matrix.isna().all(axis=0).to_numpy()]
    if len(degenerate):
        lg.warning(f'Dropping {len(degenerate)} degenerate cell(s)')
        matrix = matrix.drop(columns=degenerate)
    adata = workflow.to_anndata(matrix)
    console.item('Matrix', '{:,} genes x {:,} cells'.format(adata.n_vars, adata.n_obs))

    stopwatch.start('QC')
    adata = workflow.qc_filter(adata, opts.min_genes, opts.min_cells, opts.max_pct_mito)
    console.item('After QC', '{:,} genes x {:,} cells'.format(adata.n_vars, adata.n_obs))

    stopwatch.start('Embed')
    adata = workflow.embed(adata, n_top_genes=opts.n_top_genes, n_pcs=opts.n_pcs,
                           n_neighbors=opts.n_neighbors, resolution=opts.resolution,
                           method=opts.method, random_state=opts.seed)
    console.item('Clusters', adata.obs['cluster'].nunique())

    outputs = []
    if opts.markers:
        stopwatch.start('Markers')
        marker_sets = workflow.load_marker_sets(opts.markers)
        scores, missing = workflow.score_markers(adata, marker_sets, random_state=opts.seed)
        for name, genes in missing.items():
            if genes:
                console.verbose('{}: {} marker(s) not found'.format(name, len(genes)))
        adata.obs = adata.obs.join(scores.add_prefix('score_'))
        adata.obs['cell_type'] = workflow.assign_cell_types(scores)
        fn = opts.outfile_path('marker_scores.tsv')
        scores.to_csv(fn, sep='\t', index_label='cell')
        outputs.append(fn)

    stopwatch.start('Write')
    fn = opts.outfile_path('clusters.tsv')
    adata.obs.to_csv(fn, sep='\t', index_label='cell')
    outputs.append(fn)
    fn = opts.outfile_path('analysis.h5ad')
    adata.write_h5ad(fn)
    outputs.append(fn)
    stopwatch.stop()

    console.blank()
    console.section('Output')
    for fn in outputs:
        console.output_file(os.path.relpath(fn))
    console.blank()
    console.timing_table(stopwatch)
    lg.info("sctpm analyze complete (%s)" % fmtmins(time() - total_time))
    return adata

# This file is part of sctpm.
#
# Licensed under MIT License.

"""Downstream single-cell workflow on a normalized matrix.

Thin layer over scanpy: every step takes an AnnData (cells x genes) plus
parameters and returns a new AnnData, leaving the input untouched. PCA,
neighbor graphs, clustering, UMAP and batch integration are scanpy's (and
scanorama's) implementations.
"""

import logging as lg

import numpy as np
import pandas as pd
import yaml


def _scanpy():
    try:
        import scanpy as sc
    except ImportError as exc:
        raise ImportError('sctpm.analysis requires scanpy: pip install "sctpm[analysis]"') from exc
    return sc


def to_anndata(matrix):
    """Genes x cells DataFrame to a cells x genes AnnData.

    Degenerate (all-NaN) cells must be removed first.
    """
    import anndata

    if matrix.isna().to_numpy().any():
        bad = matrix.columns[matrix.isna().any(axis=0).to_numpy()]
        raise ValueError(f'Matrix has NaN values in {len(bad)} cell(s) (e.g. {bad[0]}); '
                         'drop degenerate cells before analysis')
    return anndata.AnnData(
        X=matrix.T.to_numpy(dtype=np.float32),
        obs=pd.DataFrame(index=matrix.columns.astype(str)),
        var=pd.DataFrame(index=matrix.index.astype(str)),
    )


def qc_filter(adata, min_genes=200, min_cells=3, max_pct_mito=None, mito_prefix='MT-'):
    """Annotate QC metrics and drop low quality cells and rare genes.

    Args:
        adata: Cells x genes AnnData.
        min_genes (int): Minimum detected genes per cell.
        min_cells (int): Minimum cells a gene is detected in.
        max_pct_mito (float): Maximum percentage of mitochondrial signal per
            cell, or None to skip.
        mito_prefix (str): Gene name prefix of mitochondrial genes.
    """
    sc = _scanpy()
    ad = adata.copy()
    ad.var['mt'] = ad.var_names.str.upper().str.startswith(mito_prefix.upper())
    sc.pp.calculate_qc_metrics(ad, qc_vars=['mt'], percent_top=None, log1p=False, inplace=True)

    n_cells, n_genes = ad.n_obs, ad.n_vars
    sc.pp.filter_cells(ad, min_genes=min_genes)
    sc.pp.filter_genes(ad, min_cells=min_cells)
    if max_pct_mito is not None:
        ad = ad[ad.obs['pct_counts_mt'] <= max_pct_mito].copy()

    lg.info(f'QC kept {ad.n_obs:,} of {n_cells:,} cells and {ad.n_vars:,} of {n_genes:,} genes')
    if ad.n_obs == 0:
        raise ValueError('No cells left after QC filtering')
    return ad


def preprocess(adata, log_transform=True, n_top_genes=2000, n_pcs=30, random_state=0):
    """log1p, highly variable genes, scaling and PCA.

    The unscaled log matrix of all genes is kept in ``.raw`` for marker
    scoring. ``n_top_genes=None`` keeps every gene.
    """
    sc = _scanpy()
    ad = adata.copy()
    if log_transform:
        sc.pp.log1p(ad)
    ad.raw = ad

    if n_top_genes is not None and n_top_genes < ad.n_vars:
        sc.pp.highly_variable_genes(ad, n_top_genes=n_top_genes)
        ad = ad[:, ad.var['highly_variable']].copy()

    sc.pp.scale(ad, max_value=10)
    n_comps = max(1, min(n_pcs, ad.n_vars - 1, ad.n_obs - 1))
    sc.tl.pca(ad, n_comps=n_comps, svd_solver='arpack', random_state=random_state)
    lg.info(f'PCA on {ad.n_vars:,} genes, {n_comps} components')
    return ad


def cluster(adata, use_rep='X_pca', n_neighbors=15, resolution=1.0, method='louvain',
            random_state=0, umap=True):
    """kNN graph, community detection and UMAP.

    Cluster labels are stored in ``obs['cluster']``.
    """
    sc = _scanpy()
    ad = adata.copy()
    sc.pp.neighbors(ad, n_neighbors=min(n_neighbors, ad.n_obs - 1), use_rep=use_rep,
                    random_state=random_state)
    if method == 'louvain':
        sc.tl.louvain(ad, resolution=resolution, random_state=random_state, key_added='cluster')
    elif method == 'leiden':
        sc.tl.leiden(ad, resolution=resolution, random_state=random_state, key_added='cluster')
    else:
        raise ValueError(f'Unknown clustering method "{method}". Choose "louvain" or "leiden".')
    lg.info(f'{method} found {ad.obs["cluster"].nunique()} clusters')

    if umap:
        sc.tl.umap(ad, random_state=random_state)
    return ad


def embed(adata, log_transform=True, n_top_genes=2000, n_pcs=30, n_neighbors=15,
          resolution=1.0, method='louvain', random_state=0, umap=True):
    """Run :func:`preprocess` then :func:`cluster` on PCA coordinates."""
    ad = preprocess(adata, log_transform, n_top_genes, n_pcs, random_state)
    return cluster(ad, 'X_pca', n_neighbors, resolution, method, random_state, umap)


def integrate(adatas, batch_key='batch', log_transform=True, n_top_genes=2000, n_pcs=30,
              random_state=0):
    """Batch-correct several datasets with scanorama.

    Datasets are joined on their shared genes and corrected in PCA space by
    mutual nearest neighbor anchors. The corrected embedding is in
    ``obsm['X_scanorama']``; pass ``use_rep='X_scanorama'`` to
    :func:`cluster`.

    Args:
        adatas (dict): Batch name -> AnnData.
    """
    import anndata

    sc = _scanpy()
    if len(adatas) < 2:
        raise ValueError('Integration needs at least two datasets')
    combined = anndata.concat(adatas, label=batch_key, join='inner', index_unique='-')
    if combined.n_vars == 0:
        raise ValueError('Datasets share no genes')
    lg.info(f'Integrating {len(adatas)} datasets: {combined.n_obs:,} cells, {combined.n_vars:,} shared genes')

    ad = preprocess(combined, log_transform, n_top_genes, n_pcs, random_state)
    sc.external.pp.scanorama_integrate(ad, key=batch_key, basis='X_pca', adjusted_basis='X_scanorama')
    return ad


def load_marker_sets(path):
    """Read marker gene sets from YAML: ``{cell type: [genes]}``."""
    with open(path) as fh:
        markers = yaml.load(fh, Loader=yaml.SafeLoader)
    if not isinstance(markers, dict) or not all(isinstance(v, list) for v in markers.values()):
        raise ValueError(f'{path}: expected a mapping of cell type to list of genes')
    return {str(k): [str(g) for g in v] for k, v in markers.items()}


def score_markers(adata, marker_sets, random_state=0):
    """Score every cell against each marker gene set.

    Returns:
        (pandas.DataFrame, dict): Cells x sets scores, and the genes of
        each set missing from the data. Sets with no gene present score NaN.
    """
    sc = _scanpy()
    ad = adata.copy()
    use_raw = ad.raw is not None
    available = set(ad.raw.var_names if use_raw else ad.var_names)

    scores = {}
    missing = {}
    for name, genes in marker_sets.items():
        present = [g for g in genes if g in available]
        missing[name] = [g for g in genes if g not in available]
        if not present:
            lg.warning(f'No genes of marker set "{name}" found in the data')
            scores[name] = pd.Series(np.nan, index=ad.obs_names)
            continue
        sc.tl.score_genes(ad, present, score_name='_score', random_state=random_state, use_raw=use_raw)
        scores[name] = ad.obs['_score'].copy()
    return pd.DataFrame(scores, index=ad.obs_names), missing


def assign_cell_types(scores, min_score=0.0):
    """Best scoring marker set per cell; ``unassigned`` below ``min_score``."""
    valid = scores.dropna(axis=1, how='all')
    if valid.shape[1] == 0:
        return pd.Series('unassigned', index=scores.index, name='cell_type')
    best = valid.idxmax(axis=1)
    best[valid.max(axis=1) <= min_score] = 'unassigned'
    best.name = 'cell_type'
    return best

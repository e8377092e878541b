# This file is part of sctpm.
#
# Licensed under MIT License.

"""Tests for the scanpy analysis layer.

Skipped unless the ``analysis`` extra is installed. Synthetic data has two
cell populations, each expressing its own block of marker genes.
"""

import numpy as np
import pandas as pd
import pytest

from sctpm.analysis.workflow import assign_cell_types, load_marker_sets

N_GENES = 120
MARKERS = {
    'astrocyte': [f'GENE{i}' for i in range(1, 15)],
    'oligodendrocyte': [f'GENE{i}' for i in range(20, 35)],
}


def two_population_matrix(seed=0, n_per_group=60):
    rng = np.random.default_rng(seed)
    genes = ['MT-CO1'] + [f'GENE{i}' for i in range(1, N_GENES)]
    lam = np.full((N_GENES, 2 * n_per_group), 2.0)
    lam[0:15, :n_per_group] = 30.0
    lam[20:35, n_per_group:] = 30.0
    values = rng.poisson(lam)
    cells = [f'a{j}' for j in range(n_per_group)] + [f'o{j}' for j in range(n_per_group)]
    return pd.DataFrame(values, index=genes, columns=cells)


@pytest.fixture
def matrix():
    return two_population_matrix()


class TestMarkerHelpers:
    def test_assign_cell_types(self):
        scores = pd.DataFrame({'A': [0.9, -0.2, 0.1], 'B': [0.1, -0.1, 0.5]}, index=['c1', 'c2', 'c3'])
        assert assign_cell_types(scores).tolist() == ['A', 'unassigned', 'B']

    def test_assign_ignores_all_nan_set(self):
        scores = pd.DataFrame({'A': [0.9, 0.2], 'B': [np.nan, np.nan]}, index=['c1', 'c2'])
        assert assign_cell_types(scores).tolist() == ['A', 'A']

    def test_load_marker_sets(self, tmp_path):
        fn = tmp_path / 'markers.yaml'
        fn.write_text('Astrocyte: [GFAP, AQP4]\nOPC:\n  - PDGFRA\n')
        assert load_marker_sets(str(fn)) == {'Astrocyte': ['GFAP', 'AQP4'], 'OPC': ['PDGFRA']}

    def test_load_marker_sets_invalid(self, tmp_path):
        fn = tmp_path / 'markers.yaml'
        fn.write_text('- GFAP\n- AQP4\n')
        with pytest.raises(ValueError, match='expected a mapping'):
            load_marker_sets(str(fn))


class TestAnnData:
    def test_transposed(self, matrix):
        pytest.importorskip('anndata')
        from sctpm.analysis import to_anndata

        adata = to_anndata(matrix)
        assert adata.shape == (matrix.shape[1], matrix.shape[0])
        assert list(adata.var_names[:2]) == ['MT-CO1', 'GENE1']

    def test_nan_rejected(self, matrix):
        pytest.importorskip('anndata')
        from sctpm.analysis import to_anndata

        matrix = matrix.astype(float)
        matrix['a0'] = np.nan
        with pytest.raises(ValueError, match='degenerate'):
            to_anndata(matrix)


class TestScanpyWorkflow:
    @pytest.fixture(autouse=True)
    def _scanpy(self):
        pytest.importorskip('scanpy')

    def test_qc_filter(self, matrix):
        from sctpm.analysis import qc_filter, to_anndata

        matrix = matrix.copy()
        matrix['sparse_cell'] = 0
        matrix.loc[['GENE1', 'GENE2'], 'sparse_cell'] = 5
        adata = qc_filter(to_anndata(matrix), min_genes=10, min_cells=3)
        assert 'sparse_cell' not in adata.obs_names
        assert 'pct_counts_mt' in adata.obs
        assert adata.n_obs == 120

    def test_qc_mito(self, matrix):
        from sctpm.analysis import qc_filter, to_anndata

        matrix = matrix.copy()
        matrix.loc['MT-CO1', 'a0'] = 100000
        adata = qc_filter(to_anndata(matrix), min_genes=10, min_cells=3, max_pct_mito=20)
        assert 'a0' not in adata.obs_names

    def test_preprocess_keeps_raw(self, matrix):
        from sctpm.analysis import preprocess, to_anndata

        adata = preprocess(to_anndata(matrix), n_top_genes=50, n_pcs=10)
        assert adata.obsm['X_pca'].shape == (120, 10)
        assert 0 < adata.n_vars < N_GENES
        assert adata.raw.n_vars == N_GENES

    def test_input_untouched(self, matrix):
        from sctpm.analysis import preprocess, to_anndata

        adata = to_anndata(matrix)
        before = adata.X.copy()
        preprocess(adata, n_top_genes=None, n_pcs=5)
        np.testing.assert_array_equal(adata.X, before)
        assert 'X_pca' not in adata.obsm

    def test_embed_separates_populations(self, matrix):
        pytest.importorskip('louvain')
        from sctpm.analysis import embed, to_anndata

        adata = embed(to_anndata(matrix), n_top_genes=None, n_pcs=10, n_neighbors=10, resolution=0.3)
        assert 'X_umap' in adata.obsm
        labels = adata.obs['cluster']
        assert labels[adata.obs_names.str.startswith('a')].nunique() == 1
        assert labels[adata.obs_names.str.startswith('o')].nunique() == 1
        assert labels['a0'] != labels['o0']

    def test_unknown_method(self, matrix):
        from sctpm.analysis import cluster, preprocess, to_anndata

        adata = preprocess(to_anndata(matrix), n_top_genes=None, n_pcs=5)
        with pytest.raises(ValueError, match='Unknown clustering method'):
            cluster(adata, method='kmeans', umap=False)

    def test_score_markers(self, matrix):
        from sctpm.analysis import preprocess, score_markers, to_anndata

        adata = preprocess(to_anndata(matrix), n_top_genes=None, n_pcs=5)
        sets = dict(MARKERS, microglia=['CX3CR1', 'P2RY12'])
        scores, missing = score_markers(adata, sets)
        assert missing['microglia'] == ['CX3CR1', 'P2RY12']
        assert scores['microglia'].isna().all()
        types = assign_cell_types(scores)
        assert (types[types.index.str.startswith('a')] == 'astrocyte').all()
        assert (types[types.index.str.startswith('o')] == 'oligodendrocyte').all()

    def test_integrate(self):
        pytest.importorskip('scanorama')
        from sctpm.analysis import integrate, to_anndata

        batches = {
            'darmanis': to_anndata(two_population_matrix(seed=1, n_per_group=30)),
            'patel': to_anndata(two_population_matrix(seed=2, n_per_group=30) * 2),
        }
        adata = integrate(batches, n_top_genes=None, n_pcs=10)
        assert adata.obsm['X_scanorama'].shape[0] == 120
        assert set(adata.obs['batch']) == {'darmanis', 'patel'}

    def test_integrate_needs_two(self, matrix):
        from sctpm.analysis import integrate, to_anndata

        with pytest.raises(ValueError, match='at least two'):
            integrate({'only': to_anndata(matrix)})

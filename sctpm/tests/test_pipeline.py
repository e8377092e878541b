# -*- coding: utf-8 -*-

# This file is part of sctpm.
#
# Licensed under MIT License.

"""Tests for file-level normalization on the bundled data, with and without cache.

Test data:
    sctpm/data/annotation.gtf - four protein-coding genes, one lncRNA, one ERCC
    sctpm/data/counts.tsv     - six genes x three cells, cell_C all zero
"""
import os

import numpy as np
import pytest

from sctpm.core.pipeline import annotation_lengths, normalize_files
from sctpm.tests import TEST_DATA_DIR
from sctpm.utils.cache import ArtifactCache

COUNTS = os.path.join(TEST_DATA_DIR, 'counts.tsv')
GTF = os.path.join(TEST_DATA_DIR, 'annotation.gtf')
EXPECTED_LENGTHS = {'GENE1': 300, 'GENE2': 200, 'GENE4': 150, 'ERCC-00002': 1000}


@pytest.fixture
def cache(tmp_path):
    return ArtifactCache(str(tmp_path / 'cache'))


class TestAnnotationLengths:
    def test_bundled(self):
        lengths = annotation_lengths(GTF)
        assert lengths.to_dict() == EXPECTED_LENGTHS
        assert lengths.dtype == np.int64

    def test_no_spikeins(self):
        lengths = annotation_lengths(GTF, spikein_sources=None)
        assert 'ERCC-00002' not in lengths.index

    def test_all_biotypes(self):
        assert 'GENE3' in annotation_lengths(GTF, biotypes=None).index

    def test_missing_gtf(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            annotation_lengths(str(tmp_path / 'missing.gtf'))

    def test_cached_by_params(self, cache):
        a = annotation_lengths(GTF, cache=cache)
        b = annotation_lengths(GTF, cache=cache)
        assert a.to_dict() == b.to_dict()
        assert len(os.listdir(cache.cache_dir)) == 1
        annotation_lengths(GTF, biotypes=None, cache=cache)
        assert len(os.listdir(cache.cache_dir)) == 2


class TestNormalizeFiles:
    def test_tpm(self):
        result, lengths = normalize_files(COUNTS, GTF)
        assert result.units == 'TPM'
        assert set(result.matrix.index) == set(EXPECTED_LENGTHS)
        np.testing.assert_allclose(result.matrix['cell_A'].to_numpy(), 250000.0)
        assert result.degenerate_cells == ('cell_C',)
        assert sorted(result.report.only_in_counts) == ['GENE3', 'GENE5']
        assert lengths.to_dict() == EXPECTED_LENGTHS

    def test_drop_degenerate(self):
        result, _ = normalize_files(COUNTS, GTF, drop_degenerate=True)
        assert list(result.matrix.columns) == ['cell_A', 'cell_B']
        assert result.degenerate_cells == ('cell_C',)

    def test_rpkm_library_includes_unannotated_genes(self):
        result, _ = normalize_files(COUNTS, GTF, units='rpkm')
        # cell_B: 19 reads in total, 5 of them on GENE2 (200 bp)
        assert result.matrix.loc['GENE2', 'cell_B'] == pytest.approx(5 / 0.2 * 1e6 / 19)

    def test_unknown_units(self):
        with pytest.raises(ValueError, match='Unknown units'):
            normalize_files(COUNTS, GTF, units='fpkm')

    def test_missing_counts(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            normalize_files(str(tmp_path / 'nope.tsv'), GTF)

    def test_cache_hit_matches(self, cache):
        fresh, _ = normalize_files(COUNTS, GTF, cache=cache)
        cached, _ = normalize_files(COUNTS, GTF, cache=cache)
        assert cached.cached and not fresh.cached
        assert cached.report == fresh.report
        assert cached.degenerate_cells == ('cell_C',)
        np.testing.assert_array_equal(cached.matrix.to_numpy(), fresh.matrix.to_numpy())
        assert list(cached.matrix.index) == list(fresh.matrix.index)

    def test_missing_report_recomputed(self, cache):
        fresh, _ = normalize_files(COUNTS, GTF, cache=cache)
        assert cache.invalidate('tpm_report') == 1
        cached, _ = normalize_files(COUNTS, GTF, cache=cache)
        assert cached.cached
        assert cached.report == fresh.report

    def test_cache_separates_units(self, cache):
        tpm, _ = normalize_files(COUNTS, GTF, cache=cache)
        cpm, _ = normalize_files(COUNTS, GTF, units='cpm', cache=cache)
        assert cpm.units == 'CPM'
        assert 'GENE5' in cpm.matrix.index
        assert 'GENE5' not in tpm.matrix.index

    def test_cache_drop_degenerate_after_hit(self, cache):
        normalize_files(COUNTS, GTF, cache=cache)
        result, _ = normalize_files(COUNTS, GTF, drop_degenerate=True, cache=cache)
        assert 'cell_C' not in result.matrix.columns

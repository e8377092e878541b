# This file is part of sctpm.
#
# Licensed under MIT License.

import logging as lg
import pickle
from collections import Counter, OrderedDict, defaultdict

from intervaltree import Interval, IntervalTree

from .gtf_utils import iter_exons


def merge_intervals(intervals):
    """Merge overlapping or adjacent half-open intervals.

    Args:
        intervals: Iterable of ``(start, end)`` pairs.

    Returns:
        (list of tuple): Disjoint intervals sorted by start.
    """
    merged = []
    for start, end in sorted(intervals):
        if merged and start <= merged[-1][1]:
            if end > merged[-1][1]:
                merged[-1][1] = end
        else:
            merged.append([start, end])
    return [(s, e) for s, e in merged]


def merged_length(intervals):
    """Total length covered by a set of possibly overlapping intervals."""
    return sum(e - s for s, e in merge_intervals(intervals))


def _fuse(a, b, d=None):
    return Interval(min(a.begin, b.begin), max(a.end, b.end), d)


class ExonAnnotation:
    """Merged exon intervals keyed by gene.

    Each chromosome holds an ``IntervalTree`` whose intervals carry the gene
    identifier as data. Overlapping or adjacent exons of the same gene are
    fused when inserted, so the tree always holds the minimal disjoint
    cover of every gene.
    """

    def __init__(self, gtf_file=None, attribute_name='gene_id', feature_type='exon',
                 biotypes=('protein_coding',), spikein_sources=('ERCC',)):
        lg.debug('Using intervaltree for exon annotation.')
        self.key = attribute_name
        self.loci = OrderedDict()
        self.itree = defaultdict(IntervalTree)

        if gtf_file is not None:
            records = iter_exons(gtf_file, attribute_name, feature_type,
                                 biotypes=biotypes, spikein_sources=spikein_sources)
            for rec in records:
                self.add(rec)

    @classmethod
    def from_records(cls, records, attribute_name='gene_id'):
        obj = cls(None, attribute_name)
        for rec in records:
            obj.add(rec)
        return obj

    def add(self, rec):
        """Add one exon record, fusing it with touching exons of the same gene."""
        if rec.gene_id not in self.loci:
            self.loci[rec.gene_id] = list()
        self.loci[rec.gene_id].append(rec)

        if rec.end <= rec.start:
            lg.debug(f'Empty exon {rec.chrom}:{rec.start}-{rec.end} for {rec.gene_id}')
            return

        tree = self.itree[rec.chrom]
        new_iv = Interval(rec.start, rec.end, rec.gene_id)
        # Widen the query by one on each side so abutting exons are fused too
        for iv in tree.overlap(rec.start - 1, rec.end + 1):
            if iv.data == rec.gene_id:
                new_iv = _fuse(iv, new_iv, rec.gene_id)
                tree.remove(iv)
        tree.add(new_iv)

    def merged_intervals(self):
        """Get merged intervals

        Returns:
            (dict of str: list): Gene names to sorted ``(chrom, start, end)``
        """
        ret = defaultdict(list)
        for chrom in sorted(self.itree):
            for iv in sorted(self.itree[chrom]):
                ret[iv.data].append((chrom, iv.begin, iv.end))
        return dict(ret)

    def feature_length(self):
        """Get effective gene lengths

        Genes whose merged length is zero are left out with a warning. Genes
        never seen in the annotation are simply absent.

        Returns:
            (dict of str: int): Gene names to summed merged exon length
        """
        ret = Counter()
        for chrom in list(self.itree.keys()):
            for iv in self.itree[chrom].items():
                ret[iv.data] += iv.length()

        _zero = [g for g in self.loci if ret.get(g, 0) <= 0]
        if _zero:
            lg.warning(f'Excluding {len(_zero)} gene(s) with zero exonic length (e.g. {_zero[0]})')
        return {g: ret[g] for g in self.loci if ret.get(g, 0) > 0}

    def __len__(self):
        return len(self.loci)

    def save(self, filename):
        with open(filename, 'wb') as outh:
            pickle.dump(
                {
                    'key': self.key,
                    'loci': self.loci,
                    'itree': dict(self.itree),
                },
                outh,
            )

    @classmethod
    def load(cls, filename):
        with open(filename, 'rb') as fh:
            loader = pickle.load(fh)
        obj = cls.__new__(cls)
        obj.key = loader['key']
        obj.loci = loader['loci']
        obj.itree = defaultdict(IntervalTree, loader['itree'])
        return obj


def gene_lengths(records, attribute_name='gene_id'):
    """Effective exonic length per gene for an iterable of exon records."""
    return ExonAnnotation.from_records(records, attribute_name).feature_length()

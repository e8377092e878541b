# This file is part of sctpm.
#
# Licensed under MIT License.

"""GTF parsing: rows, attributes and filtered exon records."""

import logging as lg
import re
from collections import namedtuple

GTFRow = namedtuple('GTFRow', ['chrom', 'source', 'feature', 'start', 'end', 'score', 'strand', 'frame', 'attribute'])

# Half-open [start, end) coordinates; GTF start is shifted down by one on read
ExonRecord = namedtuple('ExonRecord', ['gene_id', 'chrom', 'start', 'end', 'strand', 'source', 'biotype'])

# Transcript-level tags first; gene-level tags are the fallback
BIOTYPE_ATTRS = ('transcript_biotype', 'transcript_type', 'gene_biotype', 'gene_type')

_ATTR_RE = re.compile(r'(\w+)\s+"(.*?)";')


def parse_attributes(attr_str):
    """Parse a GTF attribute column into a dict.

    Only the first value of a repeated key is kept (``tag`` is often
    repeated in GENCODE files).
    """
    attrs = {}
    for key, val in _ATTR_RE.findall(attr_str):
        attrs.setdefault(key, val)
    return attrs


def record_biotype(attrs):
    for key in BIOTYPE_ATTRS:
        if key in attrs:
            return attrs[key]
    return None


def iter_exons(gtf_file, attribute='gene_id', feature_type='exon',
               biotypes=('protein_coding',), spikein_sources=('ERCC',)):
    """Yield exon records from a GTF file.

    A record is kept when its biotype is in ``biotypes`` or its source
    column is in ``spikein_sources``. Pass ``biotypes=None`` to keep every
    biotype. Malformed rows are logged and skipped.

    Args:
        gtf_file: Path or open file handle.
        attribute (str): Attribute holding the gene identifier.
        feature_type (str): Feature column value to keep.
        biotypes: Iterable of accepted biotypes, or None.
        spikein_sources: Iterable of source values always accepted.

    Yields:
        ExonRecord
    """
    _biotypes = None if biotypes is None else set(biotypes)
    _spikeins = set(spikein_sources or ())

    _opened = isinstance(gtf_file, str)
    fh = open(gtf_file) if _opened else gtf_file  # noqa: SIM115
    try:
        for rownum, line in enumerate(fh):
            if line.startswith('#') or not line.strip():
                continue
            fields = line.rstrip('\n').split('\t')
            if len(fields) != 9:
                lg.warning(f'Skipping row {rownum}: expected 9 columns, found {len(fields)}')
                continue
            f = GTFRow(*fields)
            if f.feature != feature_type:
                continue

            attr = parse_attributes(f.attribute)
            biotype = record_biotype(attr)
            if f.source not in _spikeins:
                if _biotypes is not None and biotype not in _biotypes:
                    continue

            if attribute not in attr:
                lg.warning(f'Skipping row {rownum}: missing attribute "{attribute}"')
                continue
            try:
                start, end = int(f.start), int(f.end)
            except ValueError:
                lg.warning(f'Skipping row {rownum}: non-integer coordinates {f.start!r}, {f.end!r}')
                continue
            if end < start:
                lg.warning(f'Skipping row {rownum}: end {end} precedes start {start}')
                continue

            yield ExonRecord(attr[attribute], f.chrom, start - 1, end, f.strand, f.source, biotype)
    finally:
        if _opened:
            fh.close()

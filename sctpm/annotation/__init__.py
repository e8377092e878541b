# This file is part of sctpm.
#
# Licensed under MIT License.

from .exons import ExonAnnotation, gene_lengths, merge_intervals, merged_length  # noqa: F401
from .gtf_utils import ExonRecord, iter_exons, parse_attributes  # noqa: F401

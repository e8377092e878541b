# This file is part of sctpm.
#
# Licensed under MIT License.

"""Count matrix loading and normalization."""

from .counts import read_counts, read_lengths, validate_counts, write_lengths, write_matrix  # noqa: F401
from .normalize import (  # noqa: F401
    NormalizationError,
    NormalizedMatrix,
    RestrictionReport,
    counts_to_cpm,
    counts_to_rpkm,
    counts_to_tpm,
    restrict_to_lengths,
)
from .pipeline import annotation_lengths, normalize_files  # noqa: F401

# This file is part of sctpm.
#
# Licensed under MIT License.

"""Single-cell analysis on normalized matrices. Requires the ``analysis`` extra."""

from .workflow import (  # noqa: F401
    assign_cell_types,
    cluster,
    embed,
    integrate,
    load_marker_sets,
    preprocess,
    qc_filter,
    score_markers,
    to_anndata,
)

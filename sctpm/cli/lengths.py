# -*- coding: utf-8 -*-

# This file is part of sctpm.
#
# Licensed under MIT License.

""" sctpm lengths

"""
import os
import sys
from time import time
import logging as lg

from . import REPORTING_OPTS, SubcommandOptions, configure_logging, split_list
from .tpm import ANNOTATION_OPTS
from ..core.counts import write_lengths
from ..core.pipeline import annotation_lengths
from ..utils.helpers import format_minutes as fmtmins


class LengthsOptions(SubcommandOptions):

    OPTS = """
    - Input Options:
        - gtffile:
            positional: True
            help: Genome annotation (GTF format).
""" + ANNOTATION_OPTS + """
    - Output Options:
        - outfile:
            help: Output TSV of gene lengths. Written to stdout if omitted.
""" + REPORTING_OPTS


def run(args):
    """Write the merged exonic length of every gene in a GTF file."""
    opts = LengthsOptions(args)
    console = configure_logging(opts)
    lg.info('\n{}\n'.format(opts))
    total_time = time()

    lengths = annotation_lengths(
        opts.gtffile,
        attribute=opts.attribute,
        biotypes=split_list(opts.biotypes),
        spikein_sources=split_list(opts.spikein_sources) or (),
    )

    if opts.outfile is None:
        write_lengths(lengths, sys.stdout)
        return lengths

    console.banner(opts.version)
    write_lengths(lengths, opts.outfile)
    console.status('Computed lengths for {:,} genes'.format(len(lengths)))
    console.output_file(os.path.relpath(opts.outfile))
    console.blank()
    lg.info("sctpm lengths complete (%s)" % fmtmins(time() - total_time))
    return lengths

# This file is part of sctpm.
#
# Licensed under MIT License.

""" sctpm checksum

"""
import sys
import logging as lg

from . import REPORTING_OPTS, SubcommandOptions, configure_logging
from ..utils.checksums import MANIFEST_NAME, verify_md5_manifest, write_md5_manifest


class ChecksumOptions(SubcommandOptions):

    OPTS = """
    - Input Options:
        - datadir:
            positional: True
            help: Data directory to checksum.
        - manifest:
            default: md5sum.txt
            help: Manifest file name, relative to DATADIR.
        - verify:
            action: store_true
            help: Check files against an existing manifest instead of
                  writing a new one.
""" + REPORTING_OPTS


def run(args):
    opts = ChecksumOptions(args)
    console = configure_logging(opts)
    lg.info('\n{}\n'.format(opts))
    manifest = opts.manifest or MANIFEST_NAME

    if not opts.verify:
        digests = write_md5_manifest(opts.datadir, manifest)
        console.status('Wrote {:,} checksum(s) to {}'.format(len(digests), manifest))
        return 0

    problems = verify_md5_manifest(opts.datadir, manifest)
    if problems:
        console.status('{:,} file(s) failed verification'.format(len(problems)))
        for relpath, problem in problems:
            console.detail('{:<10}{}'.format(problem, relpath))
        sys.exit(1)
    console.status('All files match {}'.format(manifest))
    return 0

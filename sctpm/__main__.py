#! /usr/bin/env python
# -*- coding: utf-8 -*-

# This file is part of sctpm.
#
# Licensed under MIT License.

""" Main functionality of sctpm

"""
import sys
import os
import argparse
import errno

from sctpm import __version__
from .cli import analyze as cli_analyze
from .cli import checksum as cli_checksum
from .cli import lengths as cli_lengths
from .cli import tpm as cli_tpm


USAGE = ''' %(prog)s <command> [<args>]

The most commonly used commands are:
   tpm        Normalize a count matrix to TPM using GTF exon lengths
   lengths    Compute merged exonic gene lengths from a GTF
   checksum   Write or verify md5 checksums of a data directory
   analyze    QC, cluster and embed a normalized matrix (needs scanpy)
   test       Generate a command line for testing

'''


def generate_test_command(args):
    _base = os.path.dirname(os.path.abspath(__file__))
    _data_path = os.path.join(_base, 'data')
    _countpath = os.path.join(_data_path, 'counts.tsv')
    _gtfpath = os.path.join(_data_path, 'annotation.gtf')
    for _path in (_countpath, _gtfpath):
        if not os.path.exists(_path):
            raise FileNotFoundError(
                errno.ENOENT, os.strerror(errno.ENOENT), _path
            )
    print('sctpm tpm %s %s' % (_countpath, _gtfpath), file=sys.stdout)


def main():
    if len(sys.argv) == 1:
        empty_parser = argparse.ArgumentParser(
            description='Length normalization of single-cell count matrices',
            usage=USAGE,
        )
        empty_parser.print_help(sys.stderr)
        sys.exit(1)

    parser = argparse.ArgumentParser(
        description='Length normalization of single-cell count matrices',
    )
    parser.add_argument('--version',
        action='version',
        version=__version__,
        default=__version__,
    )

    subparser = parser.add_subparsers(help='Sub-command help', dest='subcommand')

    ''' Parser for tpm '''
    tpm_parser = subparser.add_parser('tpm',
        description='''Normalize a gene-by-cell count matrix using merged exon lengths''',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    cli_tpm.TPMOptions.add_arguments(tpm_parser)
    tpm_parser.set_defaults(func=cli_tpm.run)

    ''' Parser for lengths '''
    lengths_parser = subparser.add_parser('lengths',
        description='''Compute merged exonic gene lengths from a GTF''',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    cli_lengths.LengthsOptions.add_arguments(lengths_parser)
    lengths_parser.set_defaults(func=cli_lengths.run)

    ''' Parser for checksum '''
    checksum_parser = subparser.add_parser('checksum',
        description='''Write or verify md5 checksums of a data directory''',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    cli_checksum.ChecksumOptions.add_arguments(checksum_parser)
    checksum_parser.set_defaults(func=cli_checksum.run)

    ''' Parser for analyze '''
    analyze_parser = subparser.add_parser('analyze',
        description='''QC, embed and cluster a normalized matrix''',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    cli_analyze.AnalyzeOptions.add_arguments(analyze_parser)
    analyze_parser.set_defaults(func=cli_analyze.run)

    ''' Parser for test '''
    test_parser = subparser.add_parser('test',
        description='''Print a test command''',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    test_parser.set_defaults(func=lambda args: generate_test_command(args))

    args = parser.parse_args()
    args.func(args)

if __name__ == '__main__':
    main()

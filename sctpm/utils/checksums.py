# This file is part of sctpm.
#
# Licensed under MIT License.

"""md5 manifests for downloaded data directories.

The manifest uses ``md5sum`` output format so it can also be checked with
``md5sum -c md5sum.txt`` from inside the directory.
"""

import logging as lg
import os

from .helpers import file_digest

MANIFEST_NAME = 'md5sum.txt'


def _walk_files(directory, exclude):
    """Files below ``directory``, skipping every file named like ``exclude``."""
    exclude = os.path.basename(exclude)
    for root, dirs, files in os.walk(directory):
        dirs.sort()
        for f in sorted(files):
            if f == exclude:
                continue
            yield os.path.relpath(os.path.join(root, f), directory)


def write_md5_manifest(directory, manifest=MANIFEST_NAME):
    """Checksum every file below ``directory`` except the manifest itself.

    Returns:
        (dict of str: str): Relative paths (``./``-prefixed) to md5 digests
    """
    digests = {}
    for relpath in _walk_files(directory, manifest):
        key = './' + relpath.replace(os.sep, '/')
        digests[key] = file_digest(os.path.join(directory, relpath), 'md5')

    with open(os.path.join(directory, manifest), 'w') as outh:
        for key, digest in digests.items():
            print(f'{digest}  {key}', file=outh)
    lg.info(f'Wrote checksums for {len(digests)} file(s) to {manifest}')
    return digests


def read_md5_manifest(directory, manifest=MANIFEST_NAME):
    digests = {}
    with open(os.path.join(directory, manifest)) as fh:
        for line in fh:
            line = line.rstrip('\n')
            if not line:
                continue
            digest, _, relpath = line.partition('  ')
            if not relpath:
                raise ValueError(f'Malformed manifest line: {line!r}')
            digests[relpath] = digest
    return digests


def verify_md5_manifest(directory, manifest=MANIFEST_NAME):
    """Compare files against a manifest.

    Returns:
        (list of tuple): ``(path, problem)`` for every file that is missing,
        changed, or not listed. Empty when everything matches.
    """
    expected = read_md5_manifest(directory, manifest)
    problems = []
    for relpath, digest in expected.items():
        fn = os.path.join(directory, *relpath.split('/'))
        if not os.path.exists(fn):
            problems.append((relpath, 'missing'))
        elif file_digest(fn, 'md5') != digest:
            problems.append((relpath, 'changed'))

    for relpath in _walk_files(directory, manifest):
        key = './' + relpath.replace(os.sep, '/')
        if key not in expected:
            problems.append((key, 'unlisted'))

    for relpath, problem in problems:
        lg.warning(f'{relpath}: {problem}')
    return problems

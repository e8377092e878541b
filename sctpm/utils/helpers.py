# This file is part of sctpm.
#
# Licensed under MIT License.

import hashlib


def format_minutes(seconds):
    mins = seconds // 60
    secs = seconds - (mins * 60)
    return "%d minutes and %d secs" % (mins, secs)


def file_digest(path, algorithm='sha256', blocksize=1 << 20):
    """Hex digest of a file's content, read in blocks."""
    h = hashlib.new(algorithm)
    with open(path, 'rb') as fh:
        for block in iter(lambda: fh.read(blocksize), b''):
            h.update(block)
    return h.hexdigest()

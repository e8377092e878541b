# This file is part of sctpm.
#
# Licensed under MIT License.

"""Content-addressed cache for derived artifacts.

An artifact is stored under a key built from the digests of its input files
and its parameters, so an artifact is reused only when the exact same bytes
went in with the exact same settings. Changing an input file or a parameter
produces a new key; old artifacts are left in place until
:meth:`ArtifactCache.invalidate` removes them.
"""

import glob
import hashlib
import json
import logging as lg
import os

from .helpers import file_digest


class ArtifactCache:

    def __init__(self, cache_dir):
        self.cache_dir = cache_dir
        os.makedirs(cache_dir, exist_ok=True)
        self._digests = {}

    def _digest(self, path):
        # Digests are memoized per (path, mtime, size) within one run
        st = os.stat(path)
        memo_key = (os.path.abspath(path), st.st_mtime_ns, st.st_size)
        if memo_key not in self._digests:
            self._digests[memo_key] = file_digest(path)
        return self._digests[memo_key]

    def key(self, inputs, params=None):
        """SHA-256 over input file digests and JSON-encoded parameters."""
        payload = {
            'inputs': [self._digest(p) for p in inputs],
            'params': params or {},
        }
        blob = json.dumps(payload, sort_keys=True, default=str).encode()
        return hashlib.sha256(blob).hexdigest()

    def path(self, name, key, ext='tsv'):
        return os.path.join(self.cache_dir, f'{name}-{key[:16]}.{ext}')

    def get_or_compute(self, name, inputs, params, compute, dump, load, ext='tsv'):
        """Load an artifact from the cache, or compute and store it.

        Args:
            name (str): Artifact name, e.g. ``'gene_lengths'``.
            inputs (list of str): Files the artifact is derived from.
            params (dict): JSON-serializable settings that affect the result.
            compute: Zero-argument callable producing the artifact.
            dump: ``dump(obj, path)`` writes the artifact.
            load: ``load(path)`` reads it back.
            ext (str): File extension of the stored artifact.

        Returns:
            (object, bool): The artifact and whether it came from the cache.
        """
        fn = self.path(name, self.key(inputs, params), ext)
        if os.path.exists(fn):
            lg.info(f'Using cached {name}: {fn}')
            return load(fn), True

        lg.info(f'No cached {name}; computing')
        obj = compute()
        partial = fn[:-len(ext)] + 'partial.' + ext
        dump(obj, partial)
        os.replace(partial, fn)
        lg.debug(f'Cached {name} at {fn}')
        return obj, False

    def invalidate(self, name=None):
        """Remove stored artifacts of ``name``, or all artifacts."""
        pattern = f'{name}-*' if name else '*-*'
        removed = 0
        for fn in glob.glob(os.path.join(self.cache_dir, pattern)):
            os.remove(fn)
            removed += 1
        lg.info(f'Removed {removed} cached artifact(s)')
        return removed

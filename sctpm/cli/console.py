# -*- coding: utf-8 -*-

# This file is part of sctpm.
#
# Licensed under MIT License.

"""Human-readable run summaries on stdout.

Logging goes to stderr (or --logfile). The Console prints what a user of
`sctpm tpm` wants to see at a glance: inputs, how many count genes matched the
annotation, which cells could not be normalized, outputs and timings.
"""

import sys
from time import perf_counter


class Stopwatch:
    """Collects named timing segments for a summary table."""

    def __init__(self):
        self._timings = []        # [(name, elapsed, level)]
        self._start = None
        self._active = None

    def start(self, name, level=0):
        """Begin timing a named stage. level=0 top-level, 1 sub-stage."""
        now = perf_counter()
        if self._active:
            self._timings.append(
                (self._active[0], now - self._active[1], self._active[2]))
        self._active = (name, now, level)
        if self._start is None:
            self._start = now

    def stop(self):
        """Stop the current segment."""
        if self._active:
            now = perf_counter()
            self._timings.append(
                (self._active[0], now - self._active[1], self._active[2]))
            self._active = None

    @property
    def total(self):
        return perf_counter() - self._start if self._start else 0.0

    @property
    def timings(self):
        return list(self._timings)


class Console:
    """Pretty stdout output for the sctpm CLI."""

    QUIET = 0
    NORMAL = 1
    VERBOSE = 2
    DEBUG = 3

    def __init__(self, level=NORMAL, stream=None):
        self.level = level
        self.stream = stream or sys.stdout
        self._use_color = hasattr(self.stream, 'isatty') and self.stream.isatty()

    def banner(self, version, subtitle='Single-cell TPM normalization'):
        """Print product banner."""
        if self.level < self.NORMAL:
            return
        self._write('')
        if self._use_color:
            self._write('\033[1msctpm v{}\033[0m — {}'.format(version, subtitle))
        else:
            self._write('sctpm v{} -- {}'.format(version, subtitle))
        self._write('')

    def section(self, title):
        """Print indented section header."""
        if self.level < self.NORMAL:
            return
        self._write('  {}'.format(title))

    def item(self, label, value, indent=4):
        """Print key: value pair."""
        if self.level < self.NORMAL:
            return
        padding = ' ' * indent
        self._write('{}{:<14}{}'.format(padding, label + ':', value))

    def status(self, message):
        """Print a status message at normal level."""
        if self.level < self.NORMAL:
            return
        self._write('  {}'.format(message))

    def detail(self, message):
        """Print indented detail at normal level."""
        if self.level < self.NORMAL:
            return
        self._write('    {}'.format(message))

    def verbose(self, message):
        """Print only in verbose/debug mode."""
        if self.level < self.VERBOSE:
            return
        self._write('    {}'.format(message))

    def restriction(self, report, cached=False):
        """Summarize how count genes were matched to annotation lengths."""
        if self.level < self.NORMAL:
            return
        source = ' (cached)' if cached else ''
        self.item('Genes kept', '{:,} of {:,}{}'.format(report.n_kept, report.n_count_genes, source))
        self.item('No length', '{:,}'.format(len(report.only_in_counts)))
        if report.zero_length:
            self.item('Zero length', '{:,}'.format(len(report.zero_length)))
        self.item('Unused', '{:,} annotated gene(s) without counts'.format(len(report.only_in_lengths)))
        if report.only_in_counts:
            self.verbose('e.g. {}'.format(', '.join(report.only_in_counts[:5])))

    def degenerate(self, cells, dropped=False):
        """Report cells without counts on any kept gene."""
        if self.level < self.NORMAL or not cells:
            return
        action = 'dropped' if dropped else 'written as NaN'
        self.item('Degenerate', '{:,} cell(s) {}'.format(len(cells), action))
        self.verbose(' '.join(cells[:10]) + (' ...' if len(cells) > 10 else ''))

    def output_file(self, path):
        """Print an output file path."""
        if self.level < self.NORMAL:
            return
        self._write('    {}'.format(path))

    def blank(self):
        if self.level < self.NORMAL:
            return
        self._write('')

    def timing_table(self, stopwatch):
        """Print timing summary table."""
        if self.level < self.NORMAL:
            return
        timings = stopwatch.timings
        total = stopwatch.total
        if not timings:
            return

        self.section('Timing')
        for name, elapsed, level in timings:
            if level > 0 and self.level < self.VERBOSE:
                continue
            indent = '      ' if level > 0 else '    '
            if level == 0 and total > 0:
                pct = '{:>4.0f}%'.format(elapsed / total * 100)
            else:
                pct = ''
            self._write('{}{:<18}{:>5.1f}s{:>8}'.format(
                indent, name, elapsed, pct))

        self._write('    ' + '─' * 30)
        self._write('    {:<18}{:>5.1f}s'.format('Total', total))

    def _write(self, text):
        print(text, file=self.stream)

"""
Dumpling Runner - Runs the snapshot dump tool as a subprocess
"""

import logging
import os
import re
import subprocess
from collections import deque
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from django.conf import settings

from replicator.config import SourceConfig
from replicator.exceptions import SnapshotDumpError

logger = logging.getLogger(__name__)

FINISHED_ROWS_RE = re.compile(r'finished rows=(\d+)')
TOTAL_ROWS_RE = re.compile(r'estimate total rows=(\d+)')

ProgressCallback = Callable[[int, int], None]


def parse_progress(line: str) -> Optional[Tuple[int, int]]:
    """
    Parse a dumpling progress log line.

    Returns:
        (dumped_rows, estimated_total_rows), or None if the line carries no progress
    """
    finished = FINISHED_ROWS_RE.search(line)
    if not finished:
        return None
    total = TOTAL_ROWS_RE.search(line)
    return int(finished.group(1)), int(total.group(1)) if total else 0


class DumplingRunner:
    """Builds the dumpling command line and streams its progress."""

    def __init__(self, binary: Optional[str] = None):
        dumpling_config = getattr(settings, 'DUMPLING_CONFIG', {})
        self.binary = binary or dumpling_config.get('BINARY', 'dumpling')

    def build_command(
        self,
        source: SourceConfig,
        concurrency: int,
        output_uri: str,
        snapshot: Optional[str] = None,
        tables: Sequence[str] = (),
    ) -> List[str]:
        cmd = [
            self.binary,
            '--host', source.host,
            '--port', str(source.port),
            '--user', source.user,
            '--password', source.password,
            '--filetype', 'csv',
            '--no-header',
            '--threads', str(concurrency),
            '--output', output_uri,
        ]
        if snapshot:
            cmd += ['--snapshot', str(snapshot)]
        for table in tables:
            cmd += ['--tables-list', table]
        return cmd

    def _build_env(self, storage_options: Optional[Dict[str, Any]]) -> Dict[str, str]:
        env = dict(os.environ)
        storage_options = storage_options or {}
        if storage_options.get('key'):
            env['AWS_ACCESS_KEY_ID'] = storage_options['key']
            env['AWS_SECRET_ACCESS_KEY'] = storage_options.get('secret', '')
        if storage_options.get('token'):
            env['AWS_SESSION_TOKEN'] = storage_options['token']
        return env

    def run_dump(
        self,
        source: SourceConfig,
        concurrency: int,
        output_uri: str,
        snapshot: Optional[str] = None,
        tables: Sequence[str] = (),
        on_progress: Optional[ProgressCallback] = None,
        storage_options: Optional[Dict[str, Any]] = None,
    ):
        """
        Dump a consistent snapshot of the given tables to ``output_uri``.

        On success dumpling writes a ``metadata`` file next to the data files.

        Args:
            source: Source database connection details
            concurrency: Number of dump threads
            output_uri: Destination (local path or object storage URI)
            snapshot: Consistency point to dump at; None lets the tool choose
            tables: Fully qualified tables to dump
            on_progress: Called with (dumped_rows, estimated_total_rows)
            storage_options: Object storage credentials

        Raises:
            SnapshotDumpError: if the tool cannot start or exits non-zero
        """
        cmd = self.build_command(source, concurrency, output_uri, snapshot, tables)
        logger.info(f"Running dumpling for {', '.join(tables)} to {output_uri} (snapshot={snapshot})")

        tail = deque(maxlen=20)
        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                env=self._build_env(storage_options),
            )
        except OSError as e:
            raise SnapshotDumpError(f"Failed to start dumpling ({self.binary}): {str(e)}") from e

        with process:
            for line in process.stdout:
                line = line.rstrip()
                tail.append(line)
                logger.debug(f"dumpling: {line}")
                progress = parse_progress(line)
                if progress and on_progress:
                    on_progress(*progress)
            returncode = process.wait()

        if returncode != 0:
            output = '\n'.join(tail)
            raise SnapshotDumpError(f"dumpling exited with code {returncode}:\n{output}")

        logger.info(f"Snapshot dump finished: {output_uri}")

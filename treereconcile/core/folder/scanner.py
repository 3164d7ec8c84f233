"""
Directory scanner feeding the inventories.

Provides recursive traversal of one tree with:
- Regular files only (symlinks are not followed by default)
- Pattern-based exclusion (gitignore-style)
- Skipped-entry reporting instead of aborting
- Progress reporting
"""

from __future__ import annotations

import logging
import os
import re
import stat
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from treereconcile.core.models import RawEntry, SkippedEntry


@dataclass
class ScanOptions:
    """Options for directory scanning."""
    follow_symlinks: bool = False
    include_hidden: bool = True
    exclude_patterns: list[str] = field(default_factory=list)


@dataclass
class ScanProgress:
    """Progress information for scanning."""
    current_path: str
    files_found: int
    skipped: int


@dataclass
class ScanResult:
    """Result of scanning one tree."""
    root_path: Path
    files: list[RawEntry]
    skipped: list[SkippedEntry]
    scan_time: float

    @property
    def file_count(self) -> int:
        return len(self.files)

    @property
    def total_size(self) -> int:
        return sum(entry.size for entry in self.files)


class PatternMatcher:
    """
    Gitignore-style pattern matcher.

    Supports:
    - * (matches any characters except /)
    - ** (matches any characters including /)
    - ? (matches single character)
    - [abc] (character class)
    - ! (negation)
    - / prefix (anchored to root)
    - / suffix (directory only)
    """

    def __init__(self, patterns: list[str]):
        self._positive_patterns: list[tuple[re.Pattern, bool]] = []  # (regex, dir_only)
        self._negative_patterns: list[tuple[re.Pattern, bool]] = []

        for pattern in patterns:
            self._compile_pattern(pattern)

    def __bool__(self) -> bool:
        return bool(self._positive_patterns)

    def _compile_pattern(self, pattern: str) -> None:
        pattern = pattern.strip()
        if not pattern or pattern.startswith('#'):
            return

        is_negative = pattern.startswith('!')
        if is_negative:
            pattern = pattern[1:]

        dir_only = pattern.endswith('/')
        if dir_only:
            pattern = pattern[:-1]

        anchored = pattern.startswith('/')
        if anchored:
            pattern = pattern[1:]

        compiled = re.compile(self._pattern_to_regex(pattern, anchored))

        if is_negative:
            self._negative_patterns.append((compiled, dir_only))
        else:
            self._positive_patterns.append((compiled, dir_only))

    @staticmethod
    def _pattern_to_regex(pattern: str, anchored: bool) -> str:
        special = '.^$+{}|()\\'
        result = []
        i = 0

        while i < len(pattern):
            c = pattern[i]

            if c == '*':
                if i + 1 < len(pattern) and pattern[i + 1] == '*':
                    if i + 2 < len(pattern) and pattern[i + 2] == '/':
                        result.append('(?:.*/)?')
                        i += 3
                    else:
                        result.append('.*')
                        i += 2
                    continue
                result.append('[^/]*')
            elif c == '?':
                result.append('[^/]')
            elif c == '[':
                j = i + 1
                if j < len(pattern) and pattern[j] == '!':
                    result.append('[^')
                    j += 1
                else:
                    result.append('[')
                while j < len(pattern) and pattern[j] != ']':
                    result.append(pattern[j])
                    j += 1
                result.append(']')
                i = j
            elif c in special:
                result.append('\\' + c)
            else:
                result.append(c)

            i += 1

        regex = ''.join(result)
        regex = ('^' if anchored else '(?:^|/)') + regex
        # A match on a directory also covers everything below it
        return regex + '(?:/.*)?$'

    def matches(self, path: str, is_dir: bool = False) -> bool:
        """
        Check if a relative path matches the patterns.

        Returns True if the path should be excluded.
        """
        path = path.replace(os.sep, '/').lstrip('/')

        if not any(
            pattern.search(path)
            for pattern, dir_only in self._positive_patterns
            if is_dir or not dir_only
        ):
            return False

        for pattern, dir_only in self._negative_patterns:
            if dir_only and not is_dir:
                continue
            if pattern.search(path):
                return False

        return True


class FolderScanner:
    """
    Enumerates every regular file below a root.

    Entries that cannot be confirmed (permission errors, files vanishing
    mid-scan, unreadable cloud placeholders) are returned as skipped rather
    than aborting the scan.
    """

    def __init__(self, options: Optional[ScanOptions] = None):
        self.options = options or ScanOptions()
        self._cancelled = False

    def scan(
        self,
        root_path: Path | str,
        progress_callback: Optional[Callable[[ScanProgress], None]] = None
    ) -> ScanResult:
        """
        Scan a directory tree.

        Args:
            root_path: Root directory to scan
            progress_callback: Called once per visited directory

        Returns:
            ScanResult with every regular file found and every skipped entry
        """
        start_time = time.time()
        root_path = Path(root_path).resolve()

        if not root_path.is_dir():
            logging.error(f"FolderScanner - Root path is not a directory: {root_path}")
            raise NotADirectoryError(f"Not a directory: {root_path}")

        self._cancelled = False
        files: list[RawEntry] = []
        skipped: list[SkippedEntry] = []
        matcher = PatternMatcher(self.options.exclude_patterns)

        def on_walk_error(error: OSError) -> None:
            path = error.filename or str(root_path)
            skipped.append(SkippedEntry(str(path), f"Access error: {error.strerror or error}"))
            logging.warning(f"FolderScanner - Walk error at {path}: {error}")

        for dirpath, dirnames, filenames in os.walk(
            root_path,
            topdown=True,
            followlinks=self.options.follow_symlinks,
            onerror=on_walk_error
        ):
            if self._cancelled:
                logging.info("FolderScanner - Scan cancelled during os.walk")
                break

            current_path = Path(dirpath)
            rel_dir = current_path.relative_to(root_path).as_posix()
            if rel_dir == '.':
                rel_dir = ''

            dirnames[:] = sorted(
                d for d in dirnames
                if self._should_descend(d, self._join(rel_dir, d), matcher)
            )

            for filename in sorted(filenames):
                rel_path = self._join(rel_dir, filename)
                if not self.options.include_hidden and filename.startswith('.'):
                    continue
                if matcher and matcher.matches(rel_path, False):
                    logging.debug(f"FolderScanner - Excluded {rel_path}")
                    continue

                entry = self._read_entry(current_path / filename, skipped)
                if entry is not None:
                    files.append(entry)

            if progress_callback:
                progress_callback(ScanProgress(
                    current_path=rel_dir,
                    files_found=len(files),
                    skipped=len(skipped),
                ))

        scan_time = time.time() - start_time
        logging.info(
            f"FolderScanner - Scanned {root_path}: {len(files)} files, "
            f"{len(skipped)} skipped in {scan_time:.2f}s"
        )

        return ScanResult(
            root_path=root_path,
            files=files,
            skipped=skipped,
            scan_time=scan_time,
        )

    def cancel(self) -> None:
        """Cancel an ongoing scan."""
        self._cancelled = True

    @staticmethod
    def _join(rel_dir: str, name: str) -> str:
        return f"{rel_dir}/{name}" if rel_dir else name

    def _should_descend(self, name: str, rel_path: str, matcher: PatternMatcher) -> bool:
        if not self.options.include_hidden and name.startswith('.'):
            return False
        if matcher and matcher.matches(rel_path, True):
            logging.debug(f"FolderScanner - Excluded directory {rel_path}")
            return False
        return True

    def _read_entry(self, path: Path, skipped: list[SkippedEntry]) -> Optional[RawEntry]:
        """Stat one file; non-regular entries are ignored, failures are skipped."""
        try:
            stat_result = path.stat() if self.options.follow_symlinks else path.lstat()
        except FileNotFoundError:
            skipped.append(SkippedEntry(str(path), "Vanished during scan"))
            logging.warning(f"FolderScanner - File vanished during scan: {path}")
            return None
        except OSError as e:
            skipped.append(SkippedEntry(str(path), f"OS error: {e}"))
            logging.warning(f"FolderScanner - Error reading metadata for {path}: {e}")
            return None

        if not stat.S_ISREG(stat_result.st_mode):
            logging.debug(f"FolderScanner - Ignoring non-regular entry {path}")
            return None

        return RawEntry(
            full_path=path,
            size=stat_result.st_size,
            modified_time=datetime.fromtimestamp(stat_result.st_mtime, tz=timezone.utc),
        )

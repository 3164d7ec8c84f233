"""
Application settings management.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from treereconcile.core.folder.engine import MatchOptions
from treereconcile.core.folder.reconciler import ReconcileOptions
from treereconcile.core.folder.scanner import ScanOptions
from treereconcile.services.hashing import HashAlgorithm, HashPolicy


@dataclass
class ScanSettings:
    """Settings for directory traversal."""
    include_hidden: bool = True
    follow_symlinks: bool = False
    exclude_patterns: list[str] = field(default_factory=list)


@dataclass
class HashSettings:
    """Settings for content hashing."""
    algorithm: HashAlgorithm = HashAlgorithm.MD5
    chunk_size: int = 65536
    poll_interval: float = 30.0
    device_retries: int = 2
    retry_delay: float = 5.0
    workers: int = 4


@dataclass
class MatchSettings:
    """Settings for the matching stages."""
    name_distance_threshold: int = 3


@dataclass
class OutputSettings:
    """Settings for result output."""
    csv_path: Optional[str] = None
    summary: bool = True


@dataclass
class ReconcileSettings:
    """Main settings container."""
    scan: ScanSettings = field(default_factory=ScanSettings)
    hashing: HashSettings = field(default_factory=HashSettings)
    matching: MatchSettings = field(default_factory=MatchSettings)
    output: OutputSettings = field(default_factory=OutputSettings)

    def to_options(self) -> ReconcileOptions:
        """Build engine options from these settings."""
        return ReconcileOptions(
            scan=ScanOptions(
                follow_symlinks=self.scan.follow_symlinks,
                include_hidden=self.scan.include_hidden,
                exclude_patterns=list(self.scan.exclude_patterns),
            ),
            match=MatchOptions(
                name_distance_threshold=self.matching.name_distance_threshold,
                hash_workers=self.hashing.workers,
            ),
            algorithm=self.hashing.algorithm,
            hash_policy=HashPolicy(
                poll_interval=self.hashing.poll_interval,
                device_retries=self.hashing.device_retries,
                retry_delay=self.hashing.retry_delay,
                chunk_size=self.hashing.chunk_size,
            ),
        )


def app_data_dir() -> Path:
    """Per-user directory for settings and logs."""
    if os.name == 'nt':
        app_data = os.environ.get('APPDATA', os.path.expanduser('~'))
        return Path(app_data) / 'TreeReconcile'
    config_home = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
    return Path(config_home) / 'treereconcile'


class SettingsManager:
    """Manager for loading/saving settings."""

    def __init__(self, settings_path: Optional[Path] = None):
        self.settings_path = Path(settings_path) if settings_path else self._get_default_path()
        self._settings: Optional[ReconcileSettings] = None
        self._observers: list[Callable[[ReconcileSettings], None]] = []

    @staticmethod
    def _get_default_path() -> Path:
        """Get the default settings file path."""
        return app_data_dir() / 'settings.json'

    @property
    def settings(self) -> ReconcileSettings:
        """Get current settings, loading from disk if needed."""
        if self._settings is None:
            self._settings = self.load()
        return self._settings

    def load(self) -> ReconcileSettings:
        """Load settings from disk; defaults if missing or unreadable."""
        if not self.settings_path.exists():
            return ReconcileSettings()

        try:
            with open(self.settings_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
            return self._from_dict(data)
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logging.warning(f"SettingsManager - Could not load {self.settings_path}, using defaults: {e}")
            return ReconcileSettings()

    def save(self, settings: Optional[ReconcileSettings] = None) -> bool:
        """Save settings to disk."""
        settings = settings or self._settings
        if settings is None:
            return False

        try:
            self.settings_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.settings_path, 'w', encoding='utf-8') as f:
                json.dump(self._to_dict(settings), f, indent=2)
        except OSError as e:
            logging.error(f"SettingsManager - Could not save {self.settings_path}: {e}")
            return False

        self._settings = settings
        self._notify_observers()
        return True

    def reset(self) -> ReconcileSettings:
        """Reset to default settings."""
        self._settings = ReconcileSettings()
        self.save()
        return self._settings

    def add_observer(self, callback: Callable[[ReconcileSettings], None]) -> None:
        """Add a callback to be notified of settings changes."""
        self._observers.append(callback)

    def remove_observer(self, callback: Callable[[ReconcileSettings], None]) -> None:
        if callback in self._observers:
            self._observers.remove(callback)

    def _notify_observers(self) -> None:
        for callback in self._observers:
            try:
                callback(self._settings)
            except Exception as e:
                logging.error(f"SettingsManager - Observer failed: {e}")

    @staticmethod
    def _to_dict(settings: ReconcileSettings) -> dict:
        """Convert settings to a JSON-serializable dictionary."""
        def convert(obj: Any) -> Any:
            if isinstance(obj, Enum):
                return obj.name
            elif isinstance(obj, list):
                return [convert(item) for item in obj]
            elif isinstance(obj, dict):
                return {k: convert(v) for k, v in obj.items()}
            return obj

        return convert(asdict(settings))

    @staticmethod
    def _from_dict(data: dict) -> ReconcileSettings:
        """Convert a dictionary back to settings; unknown keys are ignored."""
        def get_enum(enum_class: type, value: Any, default: Enum) -> Enum:
            if isinstance(value, str):
                try:
                    return enum_class[value.upper()]
                except KeyError:
                    logging.warning(f"SettingsManager - Unknown {enum_class.__name__} '{value}'")
            return default

        scan_data = data.get('scan', {})
        hash_data = data.get('hashing', {})
        match_data = data.get('matching', {})
        output_data = data.get('output', {})

        defaults = ReconcileSettings()

        scan = ScanSettings(
            include_hidden=scan_data.get('include_hidden', defaults.scan.include_hidden),
            follow_symlinks=scan_data.get('follow_symlinks', defaults.scan.follow_symlinks),
            exclude_patterns=list(scan_data.get('exclude_patterns', [])),
        )
        hashing = HashSettings(
            algorithm=get_enum(HashAlgorithm, hash_data.get('algorithm'), defaults.hashing.algorithm),
            chunk_size=int(hash_data.get('chunk_size', defaults.hashing.chunk_size)),
            poll_interval=float(hash_data.get('poll_interval', defaults.hashing.poll_interval)),
            device_retries=int(hash_data.get('device_retries', defaults.hashing.device_retries)),
            retry_delay=float(hash_data.get('retry_delay', defaults.hashing.retry_delay)),
            workers=int(hash_data.get('workers', defaults.hashing.workers)),
        )
        matching = MatchSettings(
            name_distance_threshold=int(match_data.get(
                'name_distance_threshold', defaults.matching.name_distance_threshold
            )),
        )
        output = OutputSettings(
            csv_path=output_data.get('csv_path', defaults.output.csv_path),
            summary=output_data.get('summary', defaults.output.summary),
        )

        return ReconcileSettings(scan=scan, hashing=hashing, matching=matching, output=output)

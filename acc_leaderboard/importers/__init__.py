"""
Importers for ACC server result files
"""

from .encoding import bytes_to_json_text
from .result_parser import (
    FileKind,
    SessionResults,
    EntryList,
    classify_filename,
    filename_to_timestamp,
    player_id_to_driver_id,
    read_result_file,
)
from .supersession import SupersessionResolver
from .result_importer import ResultImporter, ImportOutcome, ImportSummary
from .directory_watcher import DirectoryWatcher

__all__ = [
    'bytes_to_json_text',
    'FileKind',
    'SessionResults',
    'EntryList',
    'classify_filename',
    'filename_to_timestamp',
    'player_id_to_driver_id',
    'read_result_file',
    'SupersessionResolver',
    'ResultImporter',
    'ImportOutcome',
    'ImportSummary',
    'DirectoryWatcher',
]

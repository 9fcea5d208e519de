"""
Ingestion error taxonomy.

Every error here is scoped to the single result file being processed: the
importer logs it, leaves the file unmarked and moves on to the next file.
"""


class ResultsError(Exception):
    """Base class for per-file ingestion failures"""


class EncodingError(ResultsError):
    """The file's text encoding could not be determined"""


class MalformedJson(ResultsError):
    """The decoded text is not JSON, or not the expected document shape"""


class InvalidIdentifier(ResultsError):
    """A player id is not an 'S' followed by decimal digits"""


class TimestampParseError(ResultsError):
    """The file name timestamp is unparseable or has no UTC equivalent"""


class MissingReference(ResultsError):
    """A lap points at a car/driver pair absent from the file's leaderboard"""


class PersistenceError(ResultsError):
    """The storage layer failed; the file's transaction was rolled back"""

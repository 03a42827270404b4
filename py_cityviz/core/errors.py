"""
Error types shared by the ingestion pipeline.

Four kinds of failure are distinguished:
- input syntax: the user's query text is malformed
- io: a file or network transport failed
- data syntax: external data is not in the expected format
- missing data: the data is valid but lacks something required
"""

import json
from enum import Enum
from pathlib import Path
from typing import Optional, Union


class DataFormat(Enum):
    """The (external) format of geographic input data."""

    OSM_JSON = "osm json"
    GEOJSON = "geojson"

    def __str__(self) -> str:
        return self.value


class AppError(Exception):
    """Base class for every error raised by this package."""

    kind = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def context(self) -> dict:
        """Extra fields a caller may show next to the message."""
        return {}


class InputSyntaxError(AppError):
    """An immediate error in the query input string."""

    kind = "input_syntax"

    def __str__(self) -> str:
        return self.message


class IoError(AppError):
    """A file or network transport error."""

    kind = "io"

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status: Optional[int] = None,
    ):
        super().__init__(message)
        self.url = url
        self.status = status

    @classmethod
    def from_os_error(cls, error: OSError, path: Union[str, Path]) -> "IoError":
        url = f"file://{Path(path).absolute()}"
        return cls(error.strerror or str(error), url=url)

    def context(self) -> dict:
        return {"url": self.url, "status": self.status}

    def __str__(self) -> str:
        text = ""
        if self.status is not None:
            text += f"status {self.status} "
        text += self.message
        if self.url is not None:
            text += f" from url {self.url}"
        return text


class DataSyntaxError(AppError):
    """External data has a syntax error or is in an unrecognized format."""

    kind = "data_syntax"

    def __init__(
        self,
        message: str,
        format: DataFormat = DataFormat.OSM_JSON,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ):
        super().__init__(message)
        self.format = format
        self.line = line
        self.column = column

    @classmethod
    def from_json_error(
        cls, error: json.JSONDecodeError, format: DataFormat
    ) -> "DataSyntaxError":
        return cls("Syntax error in JSON", format=format, line=error.lineno, column=error.colno)

    def context(self) -> dict:
        return {"format": str(self.format), "line": self.line, "column": self.column}

    def __str__(self) -> str:
        text = self.message
        if self.line is not None or self.column is not None:
            text += " at"
        if self.line is not None:
            text += f" line {self.line}"
        if self.column is not None:
            text += f" char {self.column}"
        return text + f" which should be in valid {self.format} format"


class MissingDataError(AppError):
    """The request succeeded, but data that should be there is missing."""

    kind = "missing_data"

    def __str__(self) -> str:
        return f"missing data! {self.message}"

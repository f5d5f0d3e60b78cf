#!/usr/bin/env python3
"""
Exception hierarchy for cladeshift.

Every error raised by the package derives from CladeShiftError, which keeps
a context dictionary with the details needed to report or retry a call.
"""

from typing import Any, Dict, Iterable, List, Optional


class CladeShiftError(Exception):
    """Base class for all cladeshift errors."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = dict(context) if context else {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class MalformedTreeError(CladeShiftError):
    """Structural defect in a tree (cycles, unlabeled tips, childless internal nodes)."""

    def __init__(self, message: str, node_id: Optional[int] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)
        self.node_id = node_id
        if node_id is not None:
            self.context['node_id'] = node_id


class MissingBranchLengthError(CladeShiftError):
    """Branch-length reconstruction requested without usable edge lengths."""

    def __init__(self, message: str, node_ids: Optional[Iterable[int]] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)
        self.node_ids = sorted(node_ids) if node_ids else []
        if self.node_ids:
            self.context['node_ids'] = self.node_ids


class LabelMismatchError(CladeShiftError):
    """Trait labels and tree tip labels do not correspond."""

    def __init__(self, message: str, missing: Optional[Iterable[str]] = None,
                 extra: Optional[Iterable[str]] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)
        self.missing: List[str] = sorted(missing) if missing else []
        self.extra: List[str] = sorted(extra) if extra else []
        if self.missing:
            self.context['missing'] = self.missing
        if self.extra:
            self.context['extra'] = self.extra


class InvalidStatisticError(CladeShiftError):
    """The statistic function failed on a drawn sample."""


class EmptySubsetError(CladeShiftError):
    """No change events were found, so the test is undefined."""


class InvalidTraitValueError(CladeShiftError):
    """A trait value cannot be used (non-binary state, non-positive size)."""

    def __init__(self, message: str, label: Optional[str] = None, value: Any = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)
        self.label = label
        self.value = value
        if label is not None:
            self.context['label'] = label
            self.context['value'] = value


class ConfigurationError(CladeShiftError):
    """Exception raised for configuration-related errors."""


class DataLoadError(CladeShiftError):
    """A tree or trait file could not be read."""

    def __init__(self, message: str, file_path: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message, context)
        self.file_path = file_path
        if file_path is not None:
            self.context['file_path'] = str(file_path)

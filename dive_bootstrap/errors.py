from __future__ import annotations


class BootstrapError(RuntimeError):
    """A failure that aborts the step (and branch) it happened in."""


class UnsupportedTarget(BootstrapError):
    pass


class NetworkFailure(BootstrapError):
    pass


class IntegrityMismatch(BootstrapError):
    pass


class ExtractionFailure(BootstrapError):
    pass


class SubprocessFailure(BootstrapError):
    pass


class FilesystemFailure(BootstrapError):
    pass

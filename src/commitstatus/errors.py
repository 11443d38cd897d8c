from __future__ import annotations

from typing import List


class CommitStatusError(Exception):
    pass


class DataIntegrityError(CommitStatusError):
    pass


class MultipleStatusDetailsError(DataIntegrityError):
    name: str
    sha: str
    indices: List[int]

    def __init__(self, name: str, sha: str, indices: List[int]):
        self.name = name
        self.sha = sha
        self.indices = list(indices)
        super().__init__(
            f"Found {len(self.indices)} status details for sha {sha} in {name}, "
            f"expected 1 or 0 (indices {self.indices})"
        )


class DuplicateCommitStatusError(DataIntegrityError):
    sha: str

    def __init__(self, sha: str):
        self.sha = sha
        super().__init__(f"More than one status detail references sha {sha}")


class StoreError(CommitStatusError):
    pass


class NotFoundError(StoreError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Commit status {name} not found")


class AlreadyExistsError(StoreError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Commit status {name} already exists")


class ConflictError(StoreError):
    def __init__(self, name: str, expected: int, actual: int | None):
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Commit status {name} was modified concurrently "
            f"(expected version {expected}, found {actual})"
        )


class NotifyError(CommitStatusError):
    status_code: int | None

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class InvalidGitURLError(CommitStatusError, ValueError):
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Cannot determine owner and repository from {url!r}")

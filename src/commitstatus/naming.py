import re

_INVALID = re.compile(r"[^a-z0-9-]")
_DASHES = re.compile(r"-{2,}")


def to_valid_name(name: str) -> str:
    """Lower-case ``name`` and squash it into a valid resource name."""
    name = _INVALID.sub("-", name.lower())
    name = _DASHES.sub("-", name)
    return name.strip("-")


def status_record_name(owner: str, repo: str, branch: str, context: str) -> str:
    return to_valid_name(f"{owner}-{repo}-{branch}-{context}")


def pipeline_activity_name(owner: str, repo: str, branch: str, build: str) -> str:
    return to_valid_name(f"{owner}-{repo}-{branch}-{build}")

"""Recognise cherry-pick conflicts and parse conflict markers."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from porter.core.log import logger

# Phrases git prints when a cherry-pick stops on a conflict. Wording
# varies across git versions, so these are only a secondary signal.
CONFLICT_SIGNATURES = ("CONFLICT (", "Merge conflict in")

# Line prefixes that only a merge tool writes. A bare "=======" is
# left out because it is also a common underline in text files.
MARKER_PREFIXES = ("<<<<<<<", "|||||||", ">>>>>>>")


@dataclass
class Hunk:
    """One conflict region inside a file."""

    line: int
    ours: str
    theirs: str
    base: str | None
    ours_ref: str
    theirs_ref: str


def has_conflict_signature(output: str) -> bool:
    return any(signature in output for signature in CONFLICT_SIGNATURES)


def has_conflict_markers(content: str) -> bool:
    return any(
        line.startswith(MARKER_PREFIXES) for line in content.splitlines()
    )


def marked_paths(contents: Mapping[str, str]) -> list[str]:
    """Paths whose content still carries conflict markers."""
    return [path for path, text in contents.items()
            if has_conflict_markers(text)]


def is_conflict(output: str, unmerged: Mapping[str, str]) -> bool:
    """Classify a failed cherry-pick.

    Args:
        output: Combined stdout/stderr of the cherry-pick
        unmerged: Content of every unmerged path, keyed by path

    Returns:
        True if the output names a conflict, or if any unmerged path
        still contains conflict markers
    """
    return has_conflict_signature(output) or bool(marked_paths(unmerged))


def read_unmerged(repo) -> dict[str, str]:
    """Read the working-tree content of every unmerged path.

    Paths deleted on one side have no file to read and are left out.
    """
    contents = {}
    for path in repo.unmerged_paths():
        try:
            contents[path] = repo.read_file(path)
        except (FileNotFoundError, IsADirectoryError):
            logger.debug("Unmerged path has no file", path=path)
    return contents


def parse(content: str) -> list[Hunk]:
    """Split file content into conflict hunks.

    Handles both the default two-way markers and diff3 style markers
    with a ||||||| base section.

    Raises:
        ValueError: If a hunk is opened but never separated or closed
    """
    hunks = []
    lines = content.splitlines()
    i = 0
    while i < len(lines):
        if not lines[i].startswith("<<<<<<<"):
            i += 1
            continue

        start = i
        ours_ref = lines[i][7:].strip() or "ours"
        sections = {"ours": [], "base": None, "theirs": []}
        current = "ours"
        theirs_ref = None
        i += 1
        while i < len(lines):
            line = lines[i]
            if line.startswith("|||||||") and current == "ours":
                sections["base"] = []
                current = "base"
            elif line.startswith("=======") and current in ("ours", "base"):
                current = "theirs"
            elif line.startswith(">>>>>>>") and current == "theirs":
                theirs_ref = line[7:].strip() or "theirs"
                break
            else:
                sections[current].append(line)
            i += 1

        if current != "theirs":
            raise ValueError(
                f"Malformed conflict at line {start + 1}: no separator found"
            )
        if theirs_ref is None:
            raise ValueError(
                f"Malformed conflict at line {start + 1}: no end marker found"
            )

        base = sections["base"]
        hunks.append(Hunk(
            line=start + 1,
            ours="\n".join(sections["ours"]),
            theirs="\n".join(sections["theirs"]),
            base="\n".join(base) if base is not None else None,
            ours_ref=ours_ref,
            theirs_ref=theirs_ref,
        ))
        i += 1

    return hunks

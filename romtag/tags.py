"""
The tags module turns a record and its resolved dependencies into the labels a file should carry.

Tags are kept as typed values until they reach the label storage: a FixedTag is one of a small set of
descriptive labels, and a DependencyTag carries (kind, identifier, presence). Only `str(tag)`
produces the wire format, e.g. `+device:dev1`, `-disk:diskA:comma:v2`, or `bios:neogeo` when
presence was not checked.
"""

from __future__ import annotations

from dataclasses import dataclass

from romtag.common import uniq
from romtag.dependencies import DependencyKind, ResolvedDependency, ScanContext, escape_identifier
from romtag.records import Classification, MetadataRecord, Status

STATUS_LABELS: dict[Status, str] = {
    "imperfect": "Imperfect",
    "preliminary": "Preliminary",
}
# Coin-operated is tracked in the record but has no label.
CLASSIFICATION_LABELS: dict[Classification, str] = {
    "bios": "BIOS",
    "device": "Device",
    "mechanical": "Mechanical",
}
INCOMPLETE_LABEL = "Incomplete"

FIXED_LABELS: list[str] = [
    *STATUS_LABELS.values(),
    *CLASSIFICATION_LABELS.values(),
    INCOMPLETE_LABEL,
]


@dataclass(frozen=True)
class FixedTag:
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class DependencyTag:
    kind: DependencyKind
    identifier: str
    # True -> `+`, False -> `-`, None -> no prefix.
    presence: bool | None

    def __str__(self) -> str:
        prefix = "" if self.presence is None else "+" if self.presence else "-"
        return f"{prefix}{self.kind}:{escape_identifier(self.identifier)}"


Tag = FixedTag | DependencyTag


def compute_tags(
    ctx: ScanContext,
    record: MetadataRecord,
    resolved: list[ResolvedDependency],
) -> list[Tag]:
    """
    Compute the ordered tag set for an item. Same inputs, same output, in the same order: status,
    classification, one tag per dependency in resolution order, and finally Incomplete if anything
    is missing.
    """
    tags: list[Tag] = []
    if label := STATUS_LABELS.get(record.status):
        tags.append(FixedTag(label))
    for c in record.classification:
        if label := CLASSIFICATION_LABELS.get(c):
            tags.append(FixedTag(label))

    for dep in resolved:
        presence: bool | None = None
        if ctx.check_dependencies:
            # Unverified dependencies (e.g. samples without a sample directory) count as present.
            presence = not dep.missing
        tags.append(DependencyTag(kind=dep.kind, identifier=dep.identifier, presence=presence))

    if ctx.check_dependencies and any(dep.missing for dep in resolved):
        tags.append(FixedTag(INCOMPLETE_LABEL))
    return uniq(tags)


def known_vocabulary(resolved: list[ResolvedDependency]) -> set[str]:
    """
    The labels this system may remove from the item's file: the fixed labels, plus every
    serialization of every dependency of the item. All three presence variants are included, so
    that switching dependency checking on or off between runs replaces the previous run's labels.
    """
    vocabulary = set(FIXED_LABELS)
    for dep in resolved:
        for presence in (True, False, None):
            tag = DependencyTag(kind=dep.kind, identifier=dep.identifier, presence=presence)
            vocabulary.add(str(tag))
    return vocabulary


def serialize_tags(tags: list[Tag]) -> list[str]:
    return [str(t) for t in tags]

"""Logical identity tag codec.

The orchestrator's logical ID survives a provision/describe round trip only
through the reserved tag below, so every backend encodes and decodes it with
these helpers.
"""

from collections.abc import Iterable, Mapping

LOGICAL_ID_TAG = "infrakit.instance.logicalID"


def encode_logical_id(
    tags: Mapping[str, str] | None, logical_id: str | None
) -> dict[str, str]:
    """Return a copy of tags carrying logical_id under the reserved key."""
    encoded = dict(tags or {})
    if logical_id is not None:
        encoded[LOGICAL_ID_TAG] = str(logical_id)
    return encoded


def decode_logical_id(tags: Mapping[str, str] | None) -> str | None:
    """Return the logical ID stored in tags, or None."""
    if not tags:
        return None
    return tags.get(LOGICAL_ID_TAG)


def merge_tags(
    user_tags: Mapping[str, str] | None,
    system_tags: Mapping[str, str] | None,
) -> list[tuple[str, str]]:
    """Merge user and system tags, sorted by key.

    System tags overwrite user tags with the same key.
    """
    merged = dict(user_tags or {})
    merged.update(system_tags or {})
    return sorted(merged.items())


def tags_match(tags: Mapping[str, str], filter_tags: Mapping[str, str]) -> bool:
    """True when tags carries every key/value pair of filter_tags."""
    return all(tags.get(key) == value for key, value in filter_tags.items())


def tags_to_ec2(tags: Iterable[tuple[str, str]]) -> list[dict[str, str]]:
    """Convert (key, value) pairs to the EC2 ``[{"Key", "Value"}]`` shape."""
    return [{"Key": key, "Value": value} for key, value in tags]


def tags_from_ec2(ec2_tags: Iterable[Mapping[str, str]] | None) -> dict[str, str]:
    """Convert an EC2 tag list to a mapping, skipping incomplete entries."""
    tags: dict[str, str] = {}
    for tag in ec2_tags or []:
        key = tag.get("Key")
        value = tag.get("Value")
        if key is not None and value is not None:
            tags[key] = value
    return tags

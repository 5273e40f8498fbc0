"""
Constraint propagation over the knowledge maps.

Core invariant: each name belongs to at most one image. Once a name is
confirmed for one key, it is wrong for every other key the base tracks,
so it joins their exclusion sets. This is what narrows rounds for images
that have never been confirmed directly.
"""


def propagate(
    assignment: dict[str, str],
    excluded: dict[str, set[str]],
    confirmed_name: str,
    source_key: str,
) -> int:
    """
    Exclude confirmed_name from every tracked key except source_key.

    A key is tracked if it appears in either map. Mutates excluded in
    place; calling again with the same arguments changes nothing.

    Args:
        assignment: key -> confirmed name
        excluded: key -> names known to be wrong for that key
        confirmed_name: Name just confirmed for source_key
        source_key: Key the name was confirmed for

    Returns:
        Number of exclusions newly added
    """
    added = 0
    tracked = set(assignment) | set(excluded)
    for key in tracked:
        if key == source_key:
            continue
        names = excluded.setdefault(key, set())
        if confirmed_name not in names:
            names.add(confirmed_name)
            added += 1
    return added

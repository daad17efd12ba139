"""Port range and VLAN list expansion, and port mode derivation.

Both vendor dialects describe sets of ports or VLANs with the same grammar:
a comma-separated list where each token is a bare integer or an inclusive
``start-end`` range.

    config vlan default add untagged 1-4,6,8-10      (D-Link)
    switchport trunk vlan-allowed 14,18,100-110      (OLT)
"""
from typing import Iterable, List, Optional

MAX_VLAN_ID = 4094
# Highest port number accepted from a D-Link port range
MAX_PORT_NUMBER = 1024


def expand_range_list(text: str, max_value: Optional[int] = None, clamp: bool = False) -> List[int]:
    """Expand ``"1-4,6,8-10"`` into ``[1, 2, 3, 4, 6, 8, 9, 10]``.

    Duplicates are dropped keeping first-seen order. Malformed tokens and
    reversed ranges are skipped rather than rejected.

    Args:
        text: Range list
        max_value: Upper bound; tokens reaching past it are dropped as
            malformed, or cut down to it when ``clamp`` is set
        clamp: Truncate ranges at ``max_value`` instead of dropping them
    """
    if not text:
        return []

    numbers: List[int] = []
    seen = set()

    for token in text.split(","):
        token = token.strip()
        if not token:
            continue

        if "-" in token:
            start_raw, _, end_raw = token.partition("-")
            try:
                start, end = int(start_raw), int(end_raw)
            except ValueError:
                continue
            if max_value is not None and end > max_value:
                if not clamp:
                    continue
                end = max_value
            values = range(start, end + 1)
        else:
            try:
                value = int(token)
            except ValueError:
                continue
            if max_value is not None and value > max_value:
                continue
            values = [value]

        for value in values:
            if value not in seen:
                seen.add(value)
                numbers.append(value)

    return numbers


def parse_port_range(text: str) -> List[int]:
    """Expand a D-Link port range; tokens above MAX_PORT_NUMBER are dropped."""
    return expand_range_list(text, MAX_PORT_NUMBER)


def parse_vlan_list(text: str) -> List[int]:
    """Expand an OLT VLAN list, keeping only IDs in 1..4094."""
    return [vlan for vlan in expand_range_list(text, MAX_VLAN_ID, clamp=True) if vlan >= 1]


def determine_port_mode(assignments: Iterable) -> str:
    """Derive a port's mode from its VLAN assignments.

    Untagged (or native) plus tagged membership is "hybrid", untagged only
    is "access", tagged only is "trunk" and no membership is "unknown".
    Accepts anything with ``mode`` and ``native_vlan`` attributes.
    """
    has_untagged = False
    has_tagged = False

    for assignment in assignments:
        if assignment.mode == "untagged" or assignment.native_vlan:
            has_untagged = True
        if assignment.mode == "tagged":
            has_tagged = True

    if has_untagged and has_tagged:
        return "hybrid"
    if has_untagged:
        return "access"
    if has_tagged:
        return "trunk"
    return "unknown"


def get_native_vlan(assignments: Iterable) -> Optional[int]:
    """VLAN id of the first native or untagged assignment, if any."""
    for assignment in assignments:
        if assignment.native_vlan or assignment.mode == "untagged":
            return assignment.vlan_id
    return None

"""
Compact SVG path encoding.

Coordinates arrive as integer tenths of a pixel. Line segments that share
endpoints are chained into longer polylines before encoding, and every
path step uses whichever of the relative or absolute command forms is
shorter.
"""

Segment = list[tuple[int, int]]


def format_num(tenths: int) -> str:
    """Format tenths of a pixel: 120 -> "12", 125 -> "12.5", -5 -> "-0.5"."""
    if tenths % 10 == 0:
        return str(tenths // 10)
    sign = "-" if tenths < 0 else ""
    whole, frac = divmod(abs(tenths), 10)
    return f"{sign}{whole}.{frac}"


def chain_segments(segments: list[Segment]) -> list[Segment]:
    """Join segments whose end point is another segment's start point.

    Runs twice: first with every segment oriented left to right, then with
    the resulting chains oriented top to bottom. Segments are reversed in
    place.
    """
    _normalize_segments(segments, 0)
    chains = _greedy_chain(segments)

    _normalize_segments(chains, 1)
    return _greedy_chain(chains)


def _normalize_segments(segments: list[Segment], axis: int) -> None:
    for segment in segments:
        if segment and segment[-1][axis] < segment[0][axis]:
            segment.reverse()


def _greedy_chain(segments: list[Segment]) -> list[Segment]:
    # Start point -> segments starting there, in input order
    by_start: dict[tuple[int, int], list[int]] = {}
    for index, segment in enumerate(segments):
        if segment:
            by_start.setdefault(tuple(segment[0]), []).append(index)

    visited = [False] * len(segments)
    chains: list[Segment] = []
    for index, segment in enumerate(segments):
        if visited[index]:
            continue
        visited[index] = True
        chain = list(segment)

        while chain:
            candidates = by_start.get(tuple(chain[-1]), [])
            next_index = next((i for i in candidates if not visited[i]), None)
            if next_index is None:
                break
            visited[next_index] = True
            chain.extend(segments[next_index][1:])

        chains.append(chain)

    return chains


def segments_to_path(chains: list[Segment], close: bool = False) -> str:
    """Encode polylines (or rings, with close=True) as SVG path data."""
    parts = []
    for chain in chains:
        if not chain:
            continue
        px, py = chain[0]
        parts.append(f"M{format_num(px)},{format_num(py)}")
        for x, y in chain[1:]:
            dx = x - px
            dy = y - py
            if dy == 0:
                relative = "h" + format_num(dx)
                absolute = "H" + format_num(x)
            elif dx == 0:
                relative = "v" + format_num(dy)
                absolute = "V" + format_num(y)
            else:
                relative = f"l{format_num(dx)},{format_num(dy)}"
                absolute = f"L{format_num(x)},{format_num(y)}"
            parts.append(relative if len(relative) <= len(absolute) else absolute)
            px, py = x, y
        if close:
            parts.append("z")
    return "".join(parts)

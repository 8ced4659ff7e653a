"""Model lineage built from the refs and sources of parsed models."""

from dataclasses import asdict, dataclass, field
from typing import Literal

from models import ParsedModel

Direction = Literal["upstream", "downstream"]

SOURCE_PREFIX = "source:"


@dataclass
class LineageNode:
    name: str
    type: str
    upstream: list[str] = field(default_factory=list)  # refs, then "source:<schema>.<table>"
    downstream: list[str] = field(default_factory=list)
    path: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def build_lineage(
    models: dict[str, ParsedModel], paths: dict[str, str] | None = None
) -> dict[str, LineageNode]:
    """
    Link models to what they read from and what reads from them.

    Refs to models that are not in *models* stay in ``upstream`` but get
    no downstream link.
    """
    paths = paths or {}
    nodes: dict[str, LineageNode] = {}

    for name, model in models.items():
        upstream = list(model.refs)
        upstream += [f"{SOURCE_PREFIX}{schema}.{table}" for schema, table in model.sources]
        nodes[name] = LineageNode(
            name=name, type=model.type, upstream=upstream, path=paths.get(name)
        )

    for name, node in nodes.items():
        for parent in node.upstream:
            if parent in nodes and name not in nodes[parent].downstream:
                nodes[parent].downstream.append(name)

    return nodes


def collect_lineage(
    nodes: dict[str, LineageNode],
    model: str,
    direction: Direction,
    max_depth: int = 10,
) -> list[str]:
    """All models (and sources) reachable from *model*, nearest first."""
    result: list[str] = []
    visited = {model}
    frontier = [model]

    for _ in range(max_depth):
        next_frontier = []
        for name in frontier:
            node = nodes.get(name)
            if node is None:
                continue
            for dep in getattr(node, direction):
                if dep in visited:
                    continue
                visited.add(dep)
                result.append(dep)
                if not dep.startswith(SOURCE_PREFIX):
                    next_frontier.append(dep)
        if not next_frontier:
            break
        frontier = next_frontier

    return result


def impact_level(downstream_count: int) -> str:
    if downstream_count == 0:
        return "none"
    if downstream_count <= 3:
        return "low"
    if downstream_count <= 10:
        return "medium"
    return "high"


def print_tree(
    nodes: dict[str, LineageNode],
    model: str,
    direction: Direction,
    max_depth: int,
    prefix: str = "",
    visited: set[str] | None = None,
) -> None:
    """Print the lineage of *model* as an indented tree."""
    visited = visited if visited is not None else set()
    if max_depth == 0 or model in visited or model not in nodes:
        return
    visited.add(model)

    deps = getattr(nodes[model], direction)
    for i, dep in enumerate(deps):
        last = i == len(deps) - 1
        print(f"{prefix}{'└─' if last else '├─'} {dep}")
        if not dep.startswith(SOURCE_PREFIX):
            print_tree(
                nodes, dep, direction, max_depth - 1, prefix + ("  " if last else "│ "), visited
            )


def print_overview(nodes: dict[str, LineageNode]) -> None:
    roots = [n for n in nodes.values() if all(u.startswith(SOURCE_PREFIX) for u in n.upstream)]
    leaves = [n for n in nodes.values() if not n.downstream]
    connected = sorted(
        nodes.values(), key=lambda n: len(n.upstream) + len(n.downstream), reverse=True
    )[:5]

    print("\nLineage Overview")
    print("─" * 50)
    print(f"\nTotal models: {len(nodes)}")
    print(f"Root models (source-only): {len(roots)}")
    print(f"Leaf models (endpoints): {len(leaves)}")
    print("\nMost connected models:")
    for node in connected:
        print(f"  {node.name}: {len(node.upstream) + len(node.downstream)} connections")

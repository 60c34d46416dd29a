"""
Step DAG utilities (pure).

Duplicate folding, validation, stable topological ordering and
``--only`` selection. No I/O, no subprocess.
"""

from __future__ import annotations

import heapq
from collections.abc import Iterable

from devbox.core.errors import ConfigError, CycleDetected
from devbox.core.models.step import StepDescriptor


def dedupe_steps(steps: Iterable[StepDescriptor]) -> list[StepDescriptor]:
    """Fold identical descriptors into one, keeping first-declared order.

    Two descriptors with the same id and the same spec describe the same
    desired state and run once. Same id with a different spec is an error.

    Raises:
        ConfigError: Conflicting descriptors share an id.
    """
    by_id: dict[str, StepDescriptor] = {}
    result: list[StepDescriptor] = []
    for step in steps:
        existing = by_id.get(step.id)
        if existing is None:
            by_id[step.id] = step
            result.append(step)
        elif existing != step:
            raise ConfigError(f"Duplicate step ID with conflicting definitions: {step.id}")
    return result


def validate_steps(steps: list[StepDescriptor]) -> None:
    """Check ids are unique and every dependency exists.

    Raises:
        ConfigError: With every problem found, one per line.
    """
    errors: list[str] = []
    ids = {s.id for s in steps}

    seen: set[str] = set()
    for s in steps:
        if s.id in seen:
            errors.append(f"Duplicate step ID: {s.id}")
        seen.add(s.id)

    for s in steps:
        for dep in sorted(s.depends_on):
            if dep not in ids:
                errors.append(f"Step '{s.id}' depends on unknown step '{dep}'")
            elif dep == s.id:
                errors.append(f"Step '{s.id}' depends on itself")

    if errors:
        raise ConfigError("\n".join(errors))


def order_steps(steps: Iterable[StepDescriptor]) -> list[StepDescriptor]:
    """Topologically order steps (Kahn's algorithm).

    Among steps that are ready at the same time, the one declared first
    runs first, so the order is deterministic for a given input list.

    Args:
        steps: Step descriptors in declaration order.

    Returns:
        New list in execution order.

    Raises:
        ConfigError: Duplicate ids or unknown dependencies.
        CycleDetected: The dependency graph has a cycle.
    """
    steps = dedupe_steps(steps)
    validate_steps(steps)

    index = {s.id: i for i, s in enumerate(steps)}
    in_degree = {s.id: len(s.depends_on) for s in steps}
    # dep → steps that depend on it
    adj: dict[str, list[str]] = {s.id: [] for s in steps}
    for s in steps:
        for dep in s.depends_on:
            adj[dep].append(s.id)

    ready = [index[sid] for sid, deg in in_degree.items() if deg == 0]
    heapq.heapify(ready)
    ordered: list[StepDescriptor] = []

    while ready:
        step = steps[heapq.heappop(ready)]
        ordered.append(step)
        for successor in adj[step.id]:
            in_degree[successor] -= 1
            if in_degree[successor] == 0:
                heapq.heappush(ready, index[successor])

    if len(ordered) < len(steps):
        raise CycleDetected([sid for sid, deg in in_degree.items() if deg > 0])

    return ordered


def dependency_closure(steps: Iterable[StepDescriptor], wanted: Iterable[str]) -> set[str]:
    """The wanted ids plus everything they transitively depend on.

    Raises:
        ConfigError: A wanted id is not a known step.
    """
    by_id = {s.id: s for s in steps}
    wanted = list(wanted)
    unknown = sorted(set(wanted) - by_id.keys())
    if unknown:
        raise ConfigError(f"Unknown step id(s): {', '.join(unknown)}")

    closure: set[str] = set()
    stack = list(wanted)
    while stack:
        sid = stack.pop()
        if sid in closure:
            continue
        closure.add(sid)
        stack.extend(d for d in by_id[sid].depends_on if d in by_id)
    return closure


def select_steps(
    steps: Iterable[StepDescriptor],
    only: Iterable[str] | None = None,
) -> list[StepDescriptor]:
    """Restrict a step list to ``only`` and its dependencies.

    Declaration order is preserved. ``None`` or empty selects everything.
    """
    steps = list(steps)
    wanted = [w for w in (only or ()) if w]
    if not wanted:
        return steps
    keep = dependency_closure(steps, wanted)
    return [s for s in steps if s.id in keep]


"""Name-keyed diff shared by mapper synchronization.

Both sides are indexed by name. Desired entries missing remotely are created,
entries on both sides are updated only when the compared subset differs, and
remote entries without a desired counterpart are reported for deletion.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, Iterable, List, Mapping, Tuple, TypeVar

T = TypeVar("T")
C = TypeVar("C")


def _normalize(value: Any) -> Any:
    # Server defaults often return {} or [] where the desired side has nothing.
    if value in (None, {}, [], ""):
        return None
    return value


def same_subset(desired: Mapping[str, Any], current: Mapping[str, Any], compare_keys: Iterable[str]) -> bool:
    """True when ``desired`` and ``current`` agree on every key in ``compare_keys``."""
    return all(_normalize(desired.get(k)) == _normalize(current.get(k)) for k in compare_keys)


@dataclass
class NamedDiff(Generic[T, C]):
    create: List[T] = field(default_factory=list)
    update: List[Tuple[T, C]] = field(default_factory=list)
    delete: List[C] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.create or self.update or self.delete)


def diff_by_name(
    current: Mapping[str, C],
    desired: Iterable[T],
    *,
    name_of: Callable[[T], str],
    differs: Callable[[T, C], bool],
    add_only: bool,
) -> NamedDiff[T, C]:
    """Plan the calls that make the remote set match ``desired`` by name.

    A later desired entry with an already seen name replaces the earlier one,
    so the plan never creates two entries with the same name.
    """
    desired_by_name: Dict[str, T] = {}
    for item in desired:
        desired_by_name[name_of(item)] = item

    plan: NamedDiff[T, C] = NamedDiff()
    for name, item in desired_by_name.items():
        existing = current.get(name)
        if existing is None:
            plan.create.append(item)
        elif differs(item, existing):
            plan.update.append((item, existing))

    if not add_only:
        plan.delete = [entry for name, entry in current.items() if name not in desired_by_name]
    return plan

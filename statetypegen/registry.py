"""
Extension-point registry

One registry per category (guards, actions, services, activities, delays)
keeps every referenced name together with the events that trigger it and the
states it occurs in. Insertion order is preserved so repeated runs over an
unchanged machine produce identical reports.
"""

import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Sequence, Tuple

from .typegen_config import TYPEGEN_CONFIG


def state_value_from_path(path: Sequence[str]) -> Any:
    """
    Convert a state path into its state value

    ['a'] -> 'a', ['a', 'b'] -> {'a': 'b'}, ['a', 'b', 'c'] -> {'a': {'b': 'c'}}.
    The root path [] maps to {}.
    """
    if len(path) == 1:
        return path[0]
    value: Dict[str, Any] = {}
    marker = value
    for index, key in enumerate(path[:-1]):
        if index == len(path) - 2:
            marker[key] = path[index + 1]
        else:
            marker[key] = {}
            marker = marker[key]
    return value


def encode_state_value(value: Any) -> str:
    """Compact JSON encoding used for occurrence descriptors"""
    return json.dumps(value, separators=(',', ':'), ensure_ascii=False)


@dataclass(frozen=True)
class ItemLine:
    """Report line for one extension point"""
    name: str
    required: bool
    events: Tuple[str, ...] = ()
    states: Tuple[str, ...] = ()

    def to_dict(self):
        return {
            'name': self.name,
            'required': self.required,
            'events': list(self.events),
            'states': list(self.states),
        }


@dataclass(frozen=True)
class ItemReport:
    """All report lines of one category plus the aggregate required flag"""
    required: bool = False
    lines: Tuple[ItemLine, ...] = ()

    def to_dict(self):
        return {
            'required': self.required,
            'lines': [line.to_dict() for line in self.lines],
        }

    def get(self, name: str) -> ItemLine:
        for line in self.lines:
            if line.name == name:
                return line
        raise KeyError(name)

    @property
    def names(self) -> List[str]:
        return [line.name for line in self.lines]


class ExtensionPointRegistry:
    """
    Accumulator for one extension-point category

    The optionality predicate is injected per instance, so each category
    decides independently whether a name is already implemented.
    """

    def __init__(self, is_already_implemented: Callable[[str], bool]):
        self.is_already_implemented = is_already_implemented
        # name -> {'events': ordered set, 'states': ordered set}
        self._items: Dict[str, Dict[str, Dict[str, None]]] = {}

    def __contains__(self, name):
        return name in self._items

    def __len__(self):
        return len(self._items)

    def add_item(self, name: str, path: Sequence[str]):
        """Add an item along with the path of the node it occurs on"""
        item = self._items.setdefault(name, {'events': {}, 'states': {}})
        item['states'][encode_state_value(state_value_from_path(path))] = None

    def add_event_to_item(self, name: str, event_type: str, path: Sequence[str]):
        """Add an item together with the event type that triggers it"""
        self.add_item(name, path)
        self._items[name]['events'][event_type] = None

    def to_report(self) -> ItemReport:
        separator = TYPEGEN_CONFIG['internal']['namespace_separator']
        lines = []
        for name, data in self._items.items():
            # Qualified names cannot be referenced from an implementation
            if separator in name:
                continue
            lines.append(ItemLine(
                name=name,
                required=not self.is_already_implemented(name),
                events=tuple(data['events']),
                states=tuple(state for state in data['states'] if state),
            ))
        return ItemReport(
            required=any(line.required for line in lines),
            lines=tuple(lines),
        )

"""
Graph index and substate tree

Transitions may point anywhere in the machine, so they are kept in an
id-keyed adjacency map. The visualization tree is built from the ownership
hierarchy only, which guarantees termination whatever the transitions do.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from .model import Machine, StateLookupError, StateNode
from .typegen_config import TYPEGEN_CONFIG


@dataclass(frozen=True)
class Edge:
    """Events that can lead into one state"""
    id: str
    sources: Tuple[str, ...] = ()

    def to_dict(self):
        return {'id': self.id, 'sources': list(self.sources)}


@dataclass(frozen=True)
class SubStateNode:
    """Visualization-ready view of one state and its nested children"""
    targets: Tuple[str, ...] = ()
    sources: Tuple[str, ...] = ()
    states: Dict[str, 'SubStateNode'] = field(default_factory=dict)

    def to_dict(self):
        return {
            'targets': list(self.targets),
            'sources': list(self.sources),
            'states': {key: child.to_dict() for key, child in self.states.items()},
        }


class GraphIndex:
    """
    Per-state record of incoming event types and owned children

    Entries must be created with initialize() first; recording against an
    unknown id raises StateLookupError.
    """

    def __init__(self, machine_id: str = ''):
        self.machine_id = machine_id
        self._entries: Dict[str, Dict[str, Dict[str, None]]] = {}

    def initialize(self, nodes: Iterable[StateNode]):
        for node in nodes:
            self._entries[node.id] = {'sources': {}, 'children': {}}

    def _entry(self, state_id: str):
        try:
            return self._entries[state_id]
        except KeyError:
            raise StateLookupError(state_id, self.machine_id) from None

    def record_child(self, parent_id: str, child_id: str):
        self._entry(parent_id)['children'][child_id] = None

    def record_incoming_event(self, target_id: str, event_type: str):
        self._entry(target_id)['sources'][event_type] = None

    def sources(self, state_id: str) -> List[str]:
        return list(self._entry(state_id)['sources'])

    def children(self, state_id: str) -> List[str]:
        return list(self._entry(state_id)['children'])

    def edges(self) -> List[Edge]:
        return [Edge(id=state_id, sources=tuple(entry['sources']))
                for state_id, entry in self._entries.items()]


def format_transition(event_type: str, target_id: str) -> str:
    """Descriptor shown for one outgoing edge, e.g. 'GO -> machine.b'"""
    if not target_id:
        return ''
    label = event_type or TYPEGEN_CONFIG['events']['always_label']
    return f"{label} -> {target_id}"


def get_transitions_from_node(node: StateNode) -> List[str]:
    """Descriptors for every (transition, target) pair leaving node"""
    return [
        format_transition(transition.event_type, target_id)
        for transition in node.transitions
        for target_id in transition.target_ids
    ]


def get_matches_states(machine: Machine) -> List[List[str]]:
    """Path of every non-root state, in document order"""
    return [list(node.path) for node in machine.root.iter_nodes() if node.parent is not None]


def build_substate(node: StateNode, machine: Machine, graph: GraphIndex) -> SubStateNode:
    """
    Build the substate tree rooted at node

    Args:
        node: State to start from (usually machine.root)
        machine: Machine used to resolve recorded child ids
        graph: Populated graph index

    Returns:
        SubStateNode with targets, deduplicated sources and nested children
    """
    states = {}
    for child_id in graph.children(node.id):
        child = machine.get_state_node_by_id(child_id)
        states[child.key] = build_substate(child, machine, graph)

    return SubStateNode(
        targets=tuple(target for target in get_transitions_from_node(node) if target),
        sources=tuple(dict.fromkeys(source for source in graph.sources(node.id) if source)),
        states=states,
    )

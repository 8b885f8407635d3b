"""
State machine definition model

In-memory tree of states, transitions and side-effect declarations that the
introspection engine reads. Loaders (config, SCXML) build these objects;
nothing in the engine mutates them.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional

from .typegen_config import internal_prefix


class StateLookupError(LookupError):
    """Raised when a state id does not resolve to a node of the machine"""

    def __init__(self, state_id: str, machine_id: str = ''):
        self.state_id = state_id
        self.machine_id = machine_id
        where = f" in machine '{machine_id}'" if machine_id else ''
        super().__init__(f"Unknown state id '{state_id}'{where}")


@dataclass
class Guard:
    """Condition deciding whether a transition is taken"""
    name: Optional[str] = None  # sentinel 'cond' for inline predicates
    predicate: Optional[Callable[..., bool]] = None


@dataclass
class ChooseBranch:
    """One branch of the conditional-branch combinator (xstate.choose)"""
    cond: Any = None  # str (named), callable (inline) or None (default branch)
    actions: Any = field(default_factory=list)  # str or list of str, callables and nested choose actions


@dataclass
class ActionObject:
    """Side effect executed on entry, exit or transition"""
    type: Optional[str] = None  # None for inline actions
    exec: Optional[Callable[..., Any]] = None
    conds: Optional[List[ChooseBranch]] = None  # only for xstate.choose

    @property
    def is_internal(self) -> bool:
        return isinstance(self.type, str) and self.type.startswith(internal_prefix())


@dataclass
class Invocation:
    """Long-running service started while a state is active"""
    src: Any = None  # str when named, anything else when inline
    id: str = ''


@dataclass
class Activity:
    """Ongoing effect active for the duration of a state"""
    type: Optional[str] = None
    id: str = ''


@dataclass
class DelayedTransition:
    """Transition taken after a delay (milliseconds or named delay)"""
    delay: Any = None  # str when named, int or callable otherwise
    event_type: str = ''
    target_ids: List[str] = field(default_factory=list)


@dataclass
class Transition:
    """Event-triggered edge from one state to zero or more target states"""
    event_type: str = ''
    target_ids: List[str] = field(default_factory=list)
    cond: Optional[Guard] = None
    actions: List[ActionObject] = field(default_factory=list)


@dataclass(eq=False)
class StateNode:
    """One node of the hierarchical machine"""
    id: str
    key: str = ''
    path: List[str] = field(default_factory=list)
    parent: Optional['StateNode'] = field(default=None, repr=False)
    type: str = 'atomic'  # atomic, compound, parallel, final, history
    initial: Optional[str] = None
    states: Dict[str, 'StateNode'] = field(default_factory=dict)
    transitions: List[Transition] = field(default_factory=list)
    on_entry: List[ActionObject] = field(default_factory=list)
    on_exit: List[ActionObject] = field(default_factory=list)
    invoke: List[Invocation] = field(default_factory=list)
    activities: List[Activity] = field(default_factory=list)
    after: List[DelayedTransition] = field(default_factory=list)

    @property
    def initial_state_nodes(self) -> List['StateNode']:
        """Children entered when this node is initialized"""
        if self.type == 'parallel':
            return list(self.states.values())
        if self.initial and self.initial in self.states:
            return [self.states[self.initial]]
        return []

    def iter_nodes(self) -> Iterator['StateNode']:
        """Pre-order traversal of this node and its descendants"""
        yield self
        for child in self.states.values():
            yield from child.iter_nodes()


@dataclass
class Implementations:
    """Implementations already supplied for each extension-point category"""
    guards: Dict[str, Any] = field(default_factory=dict)
    actions: Dict[str, Any] = field(default_factory=dict)
    services: Dict[str, Any] = field(default_factory=dict)
    activities: Dict[str, Any] = field(default_factory=dict)
    delays: Dict[str, Any] = field(default_factory=dict)

    CATEGORIES = ('guards', 'actions', 'services', 'activities', 'delays')

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Dict[str, Any]]]) -> 'Implementations':
        data = data or {}
        unknown = set(data) - set(cls.CATEGORIES)
        if unknown:
            raise ValueError(f"Unknown implementation categories: {', '.join(sorted(unknown))}")
        return cls(**{category: dict(data.get(category) or {}) for category in cls.CATEGORIES})

    def is_implemented(self, category: str, name: str) -> bool:
        return bool(getattr(self, category).get(name))


class Machine:
    """
    Root state node plus the id lookup covering the whole tree

    Every id referenced by a transition resolves through
    get_state_node_by_id(); unknown ids raise StateLookupError.
    """

    def __init__(self, root: StateNode, implementations: Optional[Implementations] = None,
                 has_types_node: bool = False):
        self.root = root
        self.implementations = implementations or Implementations()
        self.has_types_node = has_types_node
        self._nodes_by_id: Dict[str, StateNode] = {}
        for node in root.iter_nodes():
            if node.id in self._nodes_by_id:
                raise ValueError(f"Duplicate state id '{node.id}' in machine '{root.id}'")
            self._nodes_by_id[node.id] = node

    @property
    def id(self) -> str:
        return self.root.id

    @property
    def state_ids(self) -> List[str]:
        return list(self._nodes_by_id)

    def get_state_node_by_id(self, state_id: str) -> StateNode:
        try:
            return self._nodes_by_id[state_id]
        except KeyError:
            raise StateLookupError(state_id, self.id) from None

    def __repr__(self):
        return f"Machine(id={self.id!r}, states={len(self._nodes_by_id)})"

"""
Machine introspection

Walks a machine definition once and derives the structural edge index, the
substate tree and one extension-point report per category. The result is the
input of the typegen renderer.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .graph import Edge, GraphIndex, SubStateNode, build_substate, get_matches_states
from .model import ActionObject, Machine, StateNode
from .registry import ExtensionPointRegistry, ItemReport
from .typegen_config import TYPEGEN_CONFIG, init_event

logger = logging.getLogger(__name__)

INIT_EVENT = init_event()
UNNAMED_GUARD = TYPEGEN_CONFIG['internal']['unnamed_guard']
CHOOSE_ACTION = TYPEGEN_CONFIG['internal']['choose_action']
INVOKE_ACTIVITY = TYPEGEN_CONFIG['internal']['invoke_activity']


@dataclass
class Accumulation:
    """Graph index and registries filled by one walk over a machine"""
    graph: GraphIndex
    guards: ExtensionPointRegistry
    actions: ExtensionPointRegistry
    services: ExtensionPointRegistry
    activities: ExtensionPointRegistry
    delays: ExtensionPointRegistry

    @classmethod
    def for_machine(cls, machine: Machine) -> 'Accumulation':
        implementations = machine.implementations

        def predicate(category):
            return lambda name: implementations.is_implemented(category, name)

        return cls(
            graph=GraphIndex(machine.id),
            guards=ExtensionPointRegistry(predicate('guards')),
            actions=ExtensionPointRegistry(predicate('actions')),
            services=ExtensionPointRegistry(predicate('services')),
            activities=ExtensionPointRegistry(predicate('activities')),
            delays=ExtensionPointRegistry(predicate('delays')),
        )


def _is_initial(node: StateNode) -> bool:
    if node.parent is None:
        return True
    return any(initial.id == node.id for initial in node.parent.initial_state_nodes)


def _register_choose(action: ActionObject, event_type: str, path, acc: Accumulation):
    """Attribute every branch guard and action to the enclosing transition's event"""
    for branch in action.conds:
        if isinstance(branch.cond, str):
            acc.guards.add_event_to_item(branch.cond, event_type, path)
        branch_actions = branch.actions
        if isinstance(branch_actions, str):
            branch_actions = [branch_actions]
        if isinstance(branch_actions, (list, tuple)):
            for branch_action in branch_actions:
                if isinstance(branch_action, str):
                    acc.actions.add_event_to_item(branch_action, event_type, path)
                elif (isinstance(branch_action, ActionObject) and branch_action.type == CHOOSE_ACTION
                      and isinstance(branch_action.conds, list)):
                    _register_choose(branch_action, event_type, path, acc)


def _walk_node(node: StateNode, machine: Machine, acc: Accumulation):
    # States entered through their parent's initialization get the init event
    if _is_initial(node):
        for invocation in node.invoke:
            if isinstance(invocation.src, str):
                acc.services.add_event_to_item(invocation.src, INIT_EVENT, node.path)
        for action in node.on_entry:
            if isinstance(action.type, str):
                acc.actions.add_event_to_item(action.type, INIT_EVENT, node.path)
        for delayed in node.after:
            if isinstance(delayed.delay, str):
                acc.delays.add_event_to_item(delayed.delay, INIT_EVENT, node.path)

    for child in node.states.values():
        acc.graph.record_child(node.id, child.id)

    # Activities are ongoing, not event-triggered
    for activity in node.activities:
        if isinstance(activity.type, str) and activity.type != INVOKE_ACTIVITY:
            acc.activities.add_item(activity.type, node.path)

    for delayed in node.after:
        if isinstance(delayed.delay, str):
            acc.delays.add_item(delayed.delay, node.path)

    for invocation in node.invoke:
        if isinstance(invocation.src, str):
            acc.services.add_item(invocation.src, node.path)

    for transition in node.transitions:
        event_type = transition.event_type
        targets = [machine.get_state_node_by_id(target_id) for target_id in transition.target_ids]

        for target in targets:
            acc.graph.record_incoming_event(target.id, event_type)

        guard = transition.cond
        if guard is not None and isinstance(guard.name, str) and guard.name != UNNAMED_GUARD:
            acc.guards.add_event_to_item(guard.name, event_type, node.path)

        # Services started as a result of this transition
        for target in targets:
            for invocation in target.invoke:
                if isinstance(invocation.src, str):
                    acc.services.add_event_to_item(invocation.src, event_type, target.path)

        for action in transition.actions:
            if isinstance(action.type, str) and not action.is_internal:
                acc.actions.add_event_to_item(action.type, event_type, node.path)
            if action.type == CHOOSE_ACTION and isinstance(action.conds, list):
                _register_choose(action, event_type, node.path, acc)


def _walk_entry_exit(node: StateNode, acc: Accumulation):
    for action in node.on_exit + node.on_entry:
        if not isinstance(action.type, str) or action.is_internal or action.exec is not None:
            continue
        acc.actions.add_item(action.type, node.path)

    # Entry actions inherit the events that lead into the state; exit actions do not
    sources = acc.graph.sources(node.id)
    for action in node.on_entry:
        if not isinstance(action.type, str):
            continue
        for source in sources:
            acc.actions.add_event_to_item(action.type, source, node.path)


def walk_machine(machine: Machine, acc: Optional[Accumulation] = None) -> Accumulation:
    """
    Visit every state once, then every entry/exit action list once

    Args:
        machine: Machine to walk
        acc: Accumulation to fill; a fresh one is created when omitted

    Returns:
        The populated Accumulation

    Raises:
        StateLookupError: a transition targets an id missing from the machine
    """
    if acc is None:
        acc = Accumulation.for_machine(machine)

    nodes = [machine.get_state_node_by_id(state_id) for state_id in machine.state_ids]
    acc.graph.initialize(nodes)

    for node in nodes:
        _walk_node(node, machine, acc)

    for node in nodes:
        _walk_entry_exit(node, acc)

    return acc


@dataclass(frozen=True)
class IntrospectionResult:
    """Snapshot consumed by the typegen renderer"""
    edges: Tuple[Edge, ...]
    state_matches: Tuple[Tuple[str, ...], ...]
    sub_state: SubStateNode
    guards: ItemReport
    actions: ItemReport
    services: ItemReport
    activities: ItemReport
    delays: ItemReport
    machine_id: str = ''
    has_types_node: bool = field(default=False, compare=False)

    def categories(self):
        return {
            'guards': self.guards,
            'actions': self.actions,
            'services': self.services,
            'activities': self.activities,
            'delays': self.delays,
        }

    @property
    def required(self) -> bool:
        return any(report.required for report in self.categories().values())

    def to_dict(self):
        data = {
            'edges': [edge.to_dict() for edge in self.edges],
            'stateMatches': [list(path) for path in self.state_matches],
            'subState': self.sub_state.to_dict(),
        }
        for category, report in self.categories().items():
            data[category] = report.to_dict()
        return data

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)


def introspect_machine(machine: Machine) -> IntrospectionResult:
    """
    Introspect a machine definition

    Args:
        machine: Fully built machine (see config_loader / scxml_loader)

    Returns:
        IntrospectionResult with edges, substate tree and five category reports
    """
    acc = walk_machine(machine)
    sub_state = build_substate(machine.root, machine, acc.graph)

    result = IntrospectionResult(
        edges=tuple(acc.graph.edges()),
        state_matches=tuple(tuple(path) for path in get_matches_states(machine)),
        sub_state=sub_state,
        guards=acc.guards.to_report(),
        actions=acc.actions.to_report(),
        services=acc.services.to_report(),
        activities=acc.activities.to_report(),
        delays=acc.delays.to_report(),
        machine_id=machine.id,
        has_types_node=machine.has_types_node,
    )

    logger.debug(
        "Introspected %s: %d states, %d guards, %d actions, %d services, %d activities, %d delays",
        machine.id, len(result.edges), len(result.guards.lines), len(result.actions.lines),
        len(result.services.lines), len(result.activities.lines), len(result.delays.lines),
    )
    return result


def introspect_machines(machines: List[Machine]) -> List[IntrospectionResult]:
    return [introspect_machine(machine) for machine in machines]

"""
Machine config loader

Builds a Machine from an XState-style configuration mapping (as written in
Python or loaded from a JSON document). Targets are resolved after the whole
tree is built; keys that cannot be resolved are kept as ids so the
introspection run reports them.
"""

import json
from typing import Any, List, Mapping, Optional

from .model import (
    ActionObject,
    Activity,
    ChooseBranch,
    DelayedTransition,
    Guard,
    Implementations,
    Invocation,
    Machine,
    StateNode,
    Transition,
)
from .typegen_config import TYPEGEN_CONFIG

EVENTS = TYPEGEN_CONFIG['events']
INTERNAL = TYPEGEN_CONFIG['internal']
MACHINE_DEFAULTS = TYPEGEN_CONFIG['machine']

STATE_TYPES = ('atomic', 'compound', 'parallel', 'final', 'history')


def _as_list(value) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


class MachineConfigLoader:
    """
    Loader for XState-style machine configs

    Supports nested states, on/always/after/onDone transitions, entry/exit
    actions (including xstate.choose), invoke (with onDone/onError) and
    activities.
    """

    def __init__(self):
        self.root_key = ''
        # (node, transition) pairs whose targets still hold raw config strings
        self._pending: List[tuple] = []

    def load(self, config: Mapping[str, Any], implementations=None) -> Machine:
        """
        Build a Machine from a config mapping

        Args:
            config: Root state config
            implementations: Implementations instance or a mapping of
                category -> {name: implementation}

        Returns:
            Machine with resolved transition targets
        """
        if not isinstance(config, Mapping):
            raise ValueError(f"Machine config must be a mapping, got {type(config).__name__}")

        self._pending = []
        self.root_key = config.get('key') or config.get('id') or MACHINE_DEFAULTS['default_root_id']
        root = self._parse_state(config, self.root_key, None)

        for node, transition in self._pending:
            transition.target_ids[:] = [self._resolve_target(node, raw) for raw in transition.target_ids]
        self._pending = []

        if not isinstance(implementations, Implementations):
            implementations = Implementations.from_dict(implementations)

        return Machine(
            root,
            implementations=implementations,
            has_types_node=MACHINE_DEFAULTS['types_marker'] in config,
        )

    def _parse_state(self, config, key: str, parent: Optional[StateNode]) -> StateNode:
        if not isinstance(config, Mapping):
            raise ValueError(f"State '{key}' config must be a mapping, got {type(config).__name__}")

        path = [] if parent is None else parent.path + [key]
        state_id = config.get('id') or '.'.join([self.root_key] + path)

        child_configs = config.get('states') or {}
        state_type = config.get('type') or ('compound' if child_configs else 'atomic')
        if state_type not in STATE_TYPES:
            raise ValueError(f"State '{state_id}' has unknown type '{state_type}'")

        node = StateNode(
            id=state_id,
            key=key,
            path=path,
            parent=parent,
            type=state_type,
            initial=config.get('initial'),
        )

        node.on_entry = [self._to_action(action) for action in _as_list(config.get('entry', config.get('onEntry')))]
        node.on_exit = [self._to_action(action) for action in _as_list(config.get('exit', config.get('onExit')))]

        for index, invoke_config in enumerate(_as_list(config.get('invoke'))):
            self._parse_invoke(node, invoke_config, index)

        for activity in _as_list(config.get('activities')):
            node.activities.append(self._to_activity(activity))

        for event_type, transition_config in (config.get('on') or {}).items():
            self._add_transitions(node, event_type, transition_config)

        if 'always' in config:
            self._add_transitions(node, EVENTS['always'], config['always'])

        self._parse_after(node, config.get('after'))

        if 'onDone' in config:
            self._add_transitions(node, EVENTS['done_state'].format(id=state_id), config['onDone'])

        for child_key, child_config in child_configs.items():
            node.states[child_key] = self._parse_state(child_config, child_key, node)

        if node.initial is not None and node.initial not in node.states:
            raise ValueError(
                f"Invalid initial state '{node.initial}' in state '{state_id}'. "
                f"Initial must name a direct child state."
            )
        return node

    def _parse_invoke(self, node: StateNode, invoke_config, index: int):
        if isinstance(invoke_config, str) or callable(invoke_config):
            invoke_config = {'src': invoke_config}
        if not isinstance(invoke_config, Mapping):
            raise ValueError(f"Invalid invoke config in state '{node.id}'")

        invoke_id = invoke_config.get('id') or MACHINE_DEFAULTS['invoke_id'].format(id=node.id, index=index)
        node.invoke.append(Invocation(src=invoke_config.get('src'), id=invoke_id))
        # Every invocation runs as an implicit activity
        node.activities.append(Activity(type=INTERNAL['invoke_activity'], id=invoke_id))

        if 'onDone' in invoke_config:
            self._add_transitions(node, EVENTS['done_invoke'].format(id=invoke_id), invoke_config['onDone'])
        if 'onError' in invoke_config:
            self._add_transitions(node, EVENTS['error_invoke'].format(id=invoke_id), invoke_config['onError'])

    def _parse_after(self, node: StateNode, after_config):
        if not after_config:
            return
        if isinstance(after_config, Mapping):
            items = [(delay_key, transition_config) for delay_key, transition_config in after_config.items()]
        else:
            items = []
            for transition_config in after_config:
                if not isinstance(transition_config, Mapping) or 'delay' not in transition_config:
                    raise ValueError(f"Delayed transition in state '{node.id}' needs a 'delay'")
                items.append((transition_config['delay'], transition_config))

        for delay_key, transition_config in items:
            delay = delay_key
            if isinstance(delay_key, str) and delay_key.isdigit():
                delay = int(delay_key)
            label = delay if isinstance(delay, (str, int)) else 'delay'
            event_type = EVENTS['after'].format(delay=label, id=node.id)
            transitions = self._add_transitions(node, event_type, transition_config)
            for transition in transitions:
                # Shares the transition's target list, which is resolved in place
                node.after.append(DelayedTransition(delay=delay, event_type=event_type,
                                                    target_ids=transition.target_ids))

    def _add_transitions(self, node: StateNode, event_type: str, transition_config) -> List[Transition]:
        added = []
        configs = transition_config if isinstance(transition_config, (list, tuple)) else [transition_config]
        for single in configs:
            if single is None or isinstance(single, str):
                single = {'target': single}
            if not isinstance(single, Mapping):
                raise ValueError(f"Invalid transition config for '{event_type}' in state '{node.id}'")

            transition = Transition(
                event_type=event_type,
                target_ids=[target for target in _as_list(single.get('target')) if target],
                cond=self._to_guard(single.get('cond', single.get('guard'))),
                actions=[self._to_action(action) for action in _as_list(single.get('actions'))],
            )
            node.transitions.append(transition)
            self._pending.append((node, transition))
            added.append(transition)
        return added

    def _resolve_target(self, node: StateNode, raw: str) -> str:
        """
        Resolve a target reference to a state id

        '#id' is absolute, '.child' is relative to the node itself and any
        other key path is relative to the node's parent (siblings).
        """
        if raw.startswith('#'):
            return raw[1:]

        if raw.startswith('.'):
            base = node
            keys = raw[1:].split('.')
        else:
            base = node.parent if node.parent is not None else node
            keys = raw.split('.')

        current = base
        for key in keys:
            if key not in current.states:
                return '.'.join([base.id] + keys)
            current = current.states[key]
        return current.id

    def _to_guard(self, value) -> Optional[Guard]:
        if value is None or isinstance(value, Guard):
            return value
        if isinstance(value, str):
            return Guard(name=value)
        if callable(value):
            return Guard(name=INTERNAL['unnamed_guard'], predicate=value)
        if isinstance(value, Mapping):
            return Guard(name=value.get('type') or value.get('name'))
        raise ValueError(f"Invalid guard config: {value!r}")

    def _to_action(self, value) -> ActionObject:
        if isinstance(value, ActionObject):
            return value
        if isinstance(value, str):
            return ActionObject(type=value)
        if callable(value):
            return ActionObject(exec=value)
        if isinstance(value, Mapping):
            action = ActionObject(type=value.get('type'), exec=value.get('exec'))
            if action.type == INTERNAL['choose_action']:
                action.conds = [self._to_choose_branch(branch) for branch in value.get('conds') or []]
            return action
        raise ValueError(f"Invalid action config: {value!r}")

    def _to_choose_branch(self, branch) -> ChooseBranch:
        if isinstance(branch, ChooseBranch):
            return branch
        if not isinstance(branch, Mapping):
            raise ValueError(f"Invalid choose branch config: {branch!r}")
        return ChooseBranch(cond=branch.get('cond', branch.get('guard')), actions=branch.get('actions', []))

    def _to_activity(self, value) -> Activity:
        if isinstance(value, Activity):
            return value
        if isinstance(value, str):
            return Activity(type=value)
        if callable(value):
            return Activity()
        if isinstance(value, Mapping):
            return Activity(type=value.get('type'), id=value.get('id', ''))
        raise ValueError(f"Invalid activity config: {value!r}")


def load_machine(config: Mapping[str, Any], implementations=None) -> Machine:
    """Build a Machine from a config mapping"""
    return MachineConfigLoader().load(config, implementations)


def load_machines_from_document(document: Any) -> List[Machine]:
    """
    Build machines from a decoded JSON document

    The document is one machine config, a {'config', 'implementations'}
    mapping, or a list of either.
    """
    entries = document if isinstance(document, list) else [document]
    machines = []
    for entry in entries:
        if isinstance(entry, Mapping) and 'config' in entry:
            machines.append(load_machine(entry['config'], entry.get('implementations')))
        else:
            machines.append(load_machine(entry))
    return machines


def load_machines_from_file(path: str) -> List[Machine]:
    """Load every machine defined in a JSON file"""
    with open(path, 'r', encoding='utf-8') as f:
        document = json.load(f)
    return load_machines_from_document(document)

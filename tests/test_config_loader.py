"""Machine config loader tests"""

import json

import pytest

from statetypegen import StateLookupError, load_machine, load_machines_from_file
from statetypegen.config_loader import load_machines_from_document
from statetypegen.model import Implementations


class TestStateTree:
    """Ids, paths, types and initial states"""

    def test_default_ids_follow_root_key_and_path(self):
        machine = load_machine({
            'initial': 'a',
            'states': {'a': {'initial': 'b', 'states': {'b': {}}}},
        })

        assert machine.state_ids == ['(machine)', '(machine).a', '(machine).a.b']
        node = machine.get_state_node_by_id('(machine).a.b')
        assert node.path == ['a', 'b']
        assert node.key == 'b'
        assert node.parent.id == '(machine).a'

    def test_custom_ids_are_kept(self):
        machine = load_machine({
            'id': 'm',
            'initial': 'a',
            'states': {'a': {'id': 'custom'}, 'b': {}},
        })

        assert machine.state_ids == ['m', 'custom', 'm.b']

    def test_types_are_inferred(self):
        machine = load_machine({
            'id': 'm',
            'initial': 'a',
            'states': {'a': {}, 'p': {'type': 'parallel', 'states': {'x': {}}}},
        })

        assert machine.root.type == 'compound'
        assert machine.get_state_node_by_id('m.a').type == 'atomic'
        assert machine.get_state_node_by_id('m.p').type == 'parallel'

    def test_initial_state_nodes(self):
        machine = load_machine({
            'id': 'm',
            'initial': 'b',
            'states': {'a': {}, 'b': {}},
        })

        assert [node.id for node in machine.root.initial_state_nodes] == ['m.b']

    def test_invalid_initial_raises(self):
        with pytest.raises(ValueError, match="Invalid initial state 'nope'"):
            load_machine({'id': 'm', 'initial': 'nope', 'states': {'a': {}}})

    def test_unknown_type_raises(self):
        with pytest.raises(ValueError, match='unknown type'):
            load_machine({'id': 'm', 'type': 'bogus'})

    def test_non_mapping_state_raises(self):
        with pytest.raises(ValueError):
            load_machine({'id': 'm', 'states': {'a': 'not a state'}})

    def test_lookup_of_unknown_id_raises(self):
        machine = load_machine({'id': 'm'})

        with pytest.raises(StateLookupError):
            machine.get_state_node_by_id('m.ghost')

    def test_types_marker(self):
        assert load_machine({'id': 'm', 'tsTypes': {}}).has_types_node is True
        assert load_machine({'id': 'm'}).has_types_node is False


class TestTargets:
    """Target resolution"""

    @pytest.fixture
    def machine(self):
        return load_machine({
            'id': 'm',
            'initial': 'a',
            'states': {
                'a': {
                    'initial': 'inner',
                    'on': {
                        'SIBLING': 'b',
                        'DEEP': 'b.leaf',
                        'CHILD': '.inner',
                        'ABSOLUTE': '#m.b',
                        'MULTI': {'target': ['b', '.inner']},
                        'NONE': None,
                    },
                    'states': {'inner': {}},
                },
                'b': {'initial': 'leaf', 'states': {'leaf': {}}},
            },
        })

    def targets(self, machine, event):
        node = machine.get_state_node_by_id('m.a')
        return [t.target_ids for t in node.transitions if t.event_type == event][0]

    def test_sibling(self, machine):
        assert self.targets(machine, 'SIBLING') == ['m.b']

    def test_sibling_path(self, machine):
        assert self.targets(machine, 'DEEP') == ['m.b.leaf']

    def test_child(self, machine):
        assert self.targets(machine, 'CHILD') == ['m.a.inner']

    def test_absolute(self, machine):
        assert self.targets(machine, 'ABSOLUTE') == ['m.b']

    def test_multiple_targets(self, machine):
        assert self.targets(machine, 'MULTI') == ['m.b', 'm.a.inner']

    def test_targetless(self, machine):
        assert self.targets(machine, 'NONE') == []


class TestDeclarations:
    """Actions, guards, invoke, activities and delays"""

    def test_invoke_adds_activity_and_done_transitions(self):
        machine = load_machine({
            'id': 'm',
            'initial': 'a',
            'states': {
                'a': {'invoke': {'src': 'fetch', 'onDone': 'b', 'onError': 'c'}},
                'b': {},
                'c': {},
            },
        })
        node = machine.get_state_node_by_id('m.a')

        assert node.invoke[0].src == 'fetch'
        assert node.invoke[0].id == 'm.a:invocation[0]'
        assert node.activities[0].type == 'xstate.invoke'
        assert [t.event_type for t in node.transitions] == [
            'done.invoke.m.a:invocation[0]',
            'error.platform.m.a:invocation[0]',
        ]

    def test_after_mapping_and_list(self):
        machine = load_machine({
            'id': 'm',
            'initial': 'a',
            'states': {
                'a': {'after': {'500': 'b', 'slow': 'b'}},
                'b': {'after': [{'delay': 'fast', 'target': 'a'}]},
            },
        })
        a = machine.get_state_node_by_id('m.a')
        b = machine.get_state_node_by_id('m.b')

        assert [d.delay for d in a.after] == [500, 'slow']
        assert a.after[0].event_type == 'xstate.after(500)#m.a'
        assert a.after[1].target_ids == ['m.b']
        assert b.after[0].delay == 'fast'

    def test_after_list_requires_delay(self):
        with pytest.raises(ValueError, match="needs a 'delay'"):
            load_machine({'id': 'm', 'after': [{'target': 'x'}]})

    def test_always_and_on_done(self):
        machine = load_machine({
            'id': 'm',
            'initial': 'a',
            'states': {
                'a': {'always': [{'target': 'b', 'cond': 'ready'}]},
                'b': {'initial': 'x', 'onDone': 'a', 'states': {'x': {'type': 'final'}}},
            },
        })

        a = machine.get_state_node_by_id('m.a')
        b = machine.get_state_node_by_id('m.b')
        assert a.transitions[0].event_type == ''
        assert a.transitions[0].cond.name == 'ready'
        assert b.transitions[0].event_type == 'done.state.m.b'

    def test_guard_forms(self):
        machine = load_machine({
            'id': 'm',
            'on': {
                'A': {'cond': 'named'},
                'B': {'cond': {'type': 'typed'}},
                'C': {'cond': lambda ctx, evt: True},
            },
        })

        names = [t.cond.name for t in machine.root.transitions]
        assert names == ['named', 'typed', 'cond']

    def test_choose_action(self):
        machine = load_machine({
            'id': 'm',
            'entry': {'type': 'xstate.choose', 'conds': [{'cond': 'c1', 'actions': 'a1'}, {'actions': ['a2']}]},
        })

        action = machine.root.on_entry[0]
        assert action.is_internal
        assert [branch.cond for branch in action.conds] == ['c1', None]
        assert [branch.actions for branch in action.conds] == ['a1', ['a2']]

    def test_invalid_action_raises(self):
        with pytest.raises(ValueError, match='Invalid action config'):
            load_machine({'id': 'm', 'entry': 42})

    def test_choose_branch_must_be_a_mapping(self):
        with pytest.raises(ValueError, match='Invalid choose branch config'):
            load_machine({'id': 'm', 'entry': {'type': 'xstate.choose', 'conds': ['x']}})


class TestImplementations:
    """Implementations tables"""

    def test_from_dict(self):
        implementations = Implementations.from_dict({'guards': {'ok': True, 'off': False}})

        assert implementations.is_implemented('guards', 'ok')
        assert not implementations.is_implemented('guards', 'off')
        assert not implementations.is_implemented('actions', 'ok')

    def test_unknown_category_raises(self):
        with pytest.raises(ValueError, match='Unknown implementation categories'):
            Implementations.from_dict({'widgets': {}})


class TestDocuments:
    """JSON documents"""

    def test_single_config(self):
        machines = load_machines_from_document({'id': 'one'})

        assert [m.id for m in machines] == ['one']

    def test_list_with_implementations(self):
        machines = load_machines_from_document([
            {'config': {'id': 'one'}, 'implementations': {'actions': {'go': True}}},
            {'id': 'two'},
        ])

        assert [m.id for m in machines] == ['one', 'two']
        assert machines[0].implementations.is_implemented('actions', 'go')

    def test_load_from_file(self, tmp_path):
        source = tmp_path / 'light.json'
        source.write_text(json.dumps({'id': 'light', 'initial': 'green', 'states': {'green': {}}}))

        machines = load_machines_from_file(str(source))

        assert machines[0].state_ids == ['light', 'light.green']

"""Typegen rendering and file writer tests"""

import logging
import typing
from pathlib import Path

import pytest

from statetypegen import introspect_machine, load_machine
from statetypegen.typegen import TypegenGenerator, typegen_path_for, write_typegen_file


@pytest.fixture
def generator():
    return TypegenGenerator()


def execute(source):
    namespace = {}
    exec(compile(source, '<typegen>', 'exec'), namespace)
    return namespace


class TestFilters:
    """Custom Jinja2 filters"""

    def test_identifier(self, generator):
        assert generator._identifier('traffic-light') == 'TrafficLight'
        assert generator._identifier('(machine)') == 'Machine'
        assert generator._identifier('2fa') == 'Machine2fa'
        assert generator._identifier('') == 'Machine'

    def test_python_string(self, generator):
        assert generator._python_string('say "hi"') == '"say \\"hi\\""'

    def test_python_tuple(self, generator):
        assert generator._python_tuple([]) == '()'
        assert generator._python_tuple(['a']) == '("a",)'
        assert generator._python_tuple(['a', 'b']) == '("a", "b")'


class TestRender:
    """Rendered module content"""

    @pytest.fixture
    def namespace(self, generator, nested_machine):
        output = generator.render([introspect_machine(nested_machine)], 'player.json')
        return execute(output)

    def test_header_names_source(self, generator, nested_machine):
        output = generator.render([introspect_machine(nested_machine)], 'player.json')

        assert output.startswith('# GENERATED FILE')
        assert '# Source: player.json' in output

    def test_missing_implementations(self, namespace):
        missing = namespace['PlayerMissingImplementations']

        assert missing['actions'] == ('resetTrack', 'rewind', 'logStop', 'stopAudio', 'reportError')
        assert missing['delays'] == ()
        assert missing['services'] == ('loadAudio',)

    def test_events_causing(self, namespace):
        assert namespace['PlayerEventsCausingActions']['resetTrack'] == ('init', 'STOP')
        assert namespace['PlayerEventsCausingGuards'] == {'hasTrack': ('PLAY',), 'isLooping': ('STOP',)}
        assert namespace['PlayerEventsCausingActivities'] == {'beep': ()}

    def test_state_value_literal(self, namespace):
        values = typing.get_args(namespace['PlayerStateValue'])

        assert values[:3] == ('idle', 'playing', 'playing.audio')
        assert 'playing.audio.loading' in values

    def test_typed_dict_required_keys(self, namespace):
        actions = namespace['PlayerActions']

        assert 'resetTrack' in actions.__required_keys__
        assert 'startAudio' in actions.__optional_keys__
        assert namespace['PlayerDelays'].__optional_keys__ == frozenset({'loadTimeout'})

    def test_duplicate_machine_ids_get_unique_prefixes(self, generator):
        results = [introspect_machine(load_machine({'id': 'm'})) for _ in range(2)]

        namespace = execute(generator.render(results))

        assert 'MMissingImplementations' in namespace
        assert 'M1MissingImplementations' in namespace

    def test_machine_without_states(self, generator):
        namespace = execute(generator.render([introspect_machine(load_machine({'id': 'solo'}))]))

        assert namespace['SoloStateValue'] is str


class TestWriter:
    """write_typegen_file"""

    def test_output_path(self):
        assert typegen_path_for('machines/light.json') == Path('machines/light_typegen.py')
        assert typegen_path_for('door.scxml', 'out') == Path('out/door_typegen.py')

    def test_writes_when_marker_present(self, tmp_path, nested_machine):
        source = tmp_path / 'player.json'

        written = write_typegen_file(str(source), [introspect_machine(nested_machine)])

        assert written == tmp_path / 'player_typegen.py'
        assert 'PlayerMissingImplementations' in written.read_text()

    def test_removes_stale_file_without_marker(self, tmp_path, go_machine):
        source = tmp_path / 'demo.json'
        stale = tmp_path / 'demo_typegen.py'
        stale.write_text('# old')

        written = write_typegen_file(str(source), [introspect_machine(go_machine)])

        assert written is None
        assert not stale.exists()

    def test_missing_stale_file_is_fine(self, tmp_path, go_machine):
        assert write_typegen_file(str(tmp_path / 'demo.json'), [introspect_machine(go_machine)]) is None

    def test_io_errors_are_logged_not_raised(self, tmp_path, nested_machine, caplog):
        blocker = tmp_path / 'blocker'
        blocker.write_text('not a directory')

        with caplog.at_level(logging.ERROR, logger='statetypegen.typegen'):
            written = write_typegen_file(
                str(tmp_path / 'player.json'),
                [introspect_machine(nested_machine)],
                output_dir=str(blocker / 'sub'),
            )

        assert written is None
        assert 'Failed to write typegen file' in caplog.text

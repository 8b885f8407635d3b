"""statetypegen test configuration"""

import pytest

from statetypegen import load_machine


@pytest.fixture
def go_machine():
    """Root with initial A; GO leads to B, which notifies and fetches data"""
    return load_machine({
        'id': 'demo',
        'initial': 'A',
        'states': {
            'A': {'on': {'GO': 'B'}},
            'B': {
                'entry': 'notify',
                'invoke': {'src': 'fetchData'},
            },
        },
    })


@pytest.fixture
def nested_machine():
    """Compound and parallel states with guards, choose and delays"""
    return load_machine({
        'id': 'player',
        'initial': 'idle',
        'tsTypes': {},
        'states': {
            'idle': {
                'entry': ['resetTrack'],
                'on': {
                    'PLAY': [
                        {'target': 'playing', 'cond': 'hasTrack', 'actions': 'startAudio'},
                        {'target': 'error'},
                    ],
                },
            },
            'playing': {
                'type': 'parallel',
                'activities': ['beep'],
                'exit': 'stopAudio',
                'on': {
                    'STOP': {
                        'target': 'idle',
                        'actions': [{
                            'type': 'xstate.choose',
                            'conds': [
                                {'cond': 'isLooping', 'actions': ['rewind', 'xstate.log']},
                                {'actions': 'logStop'},
                            ],
                        }],
                    },
                },
                'states': {
                    'audio': {
                        'initial': 'loading',
                        'states': {
                            'loading': {
                                'invoke': {'src': 'loadAudio', 'id': 'loader', 'onDone': 'ready'},
                                'after': {'loadTimeout': '#player.error'},
                            },
                            'ready': {},
                        },
                    },
                    'video': {},
                },
            },
            'error': {'entry': 'reportError'},
        },
    }, implementations={'actions': {'startAudio': True}, 'delays': {'loadTimeout': 3000}})

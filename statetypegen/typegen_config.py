"""
statetypegen Configuration - Single Source of Truth

This file contains the constants shared by the introspection engine, the
loaders and the typegen renderer. Change a marker or a generated header here
and every consumer picks it up.

Usage:
    from statetypegen.typegen_config import TYPEGEN_CONFIG
    print(TYPEGEN_CONFIG['events']['init'])
"""

TYPEGEN_CONFIG = {
    # Framework-reserved names
    'internal': {
        'prefix': 'xstate.',
        'choose_action': 'xstate.choose',
        'invoke_activity': 'xstate.invoke',
        'unnamed_guard': 'cond',
        'namespace_separator': '.',
    },

    # Synthetic / derived event types
    'events': {
        'init': 'init',
        'always': '',
        'always_label': '(always)',
        'after': 'xstate.after({delay})#{id}',
        'done_state': 'done.state.{id}',
        'done_invoke': 'done.invoke.{id}',
        'error_invoke': 'error.platform.{id}',
    },

    # Config loader defaults
    'machine': {
        'default_root_id': '(machine)',
        'types_marker': 'tsTypes',
        'invoke_id': '{id}:invocation[{index}]',
    },

    # Output files
    'output': {
        'suffix': '_typegen.py',
        'template': 'typegen.py.jinja2',
        'source_suffixes': ['.json', '.scxml', '.xml'],
    },

    # Generated code header
    'generated_header': {
        'title': 'GENERATED FILE - do not edit by hand',
        'description': 'Regenerate with `statetypegen <source>` after changing the machine definition.',
    },
}


def internal_prefix():
    """Prefix reserved for framework actions, activities and events"""
    return TYPEGEN_CONFIG['internal']['prefix']


def init_event():
    """Synthetic event recorded for states entered through initialization"""
    return TYPEGEN_CONFIG['events']['init']


def get_generated_header(source_name):
    """Get the comment header written at the top of every generated module"""
    header = TYPEGEN_CONFIG['generated_header']
    return (
        f"# {header['title']}\n"
        f"# Source: {source_name}\n"
        f"# {header['description']}\n"
    )


if __name__ == '__main__':
    print("=== statetypegen Configuration ===\n")
    print(f"Internal prefix: {internal_prefix()}")
    print(f"Init event: {init_event()!r}")
    print(f"Output suffix: {TYPEGEN_CONFIG['output']['suffix']}")
    print("\n=== Generated Header ===")
    print(get_generated_header('machine.json'))

"""
statetypegen - static introspection and typegen for hierarchical state machines
"""

from .config_loader import load_machine, load_machines_from_file
from .graph import GraphIndex, SubStateNode, build_substate
from .introspect import Accumulation, IntrospectionResult, introspect_machine, walk_machine
from .model import Machine, StateLookupError, StateNode
from .registry import ExtensionPointRegistry, ItemLine, ItemReport
from .scxml_loader import SCXMLLoader, load_scxml_file
from .typegen import TypegenGenerator, write_typegen_file

__version__ = '0.1.0'

__all__ = [
    'Accumulation',
    'ExtensionPointRegistry',
    'GraphIndex',
    'IntrospectionResult',
    'ItemLine',
    'ItemReport',
    'Machine',
    'SCXMLLoader',
    'StateLookupError',
    'StateNode',
    'SubStateNode',
    'TypegenGenerator',
    'build_substate',
    'introspect_machine',
    'load_machine',
    'load_machines_from_file',
    'load_scxml_file',
    'walk_machine',
    'write_typegen_file',
]

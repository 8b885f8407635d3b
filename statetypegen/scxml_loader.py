"""
SCXML Loader for Machine Introspection

Parses W3C SCXML documents into the Machine definition model so they can be
introspected like config-based machines. Executable content from the SCXML
namespace maps to internal xstate.* actions; elements from any other
namespace are treated as named, user-implemented actions.
"""

import re
from pathlib import Path
from typing import List, Optional

from lxml import etree

from .model import (
    ActionObject,
    Activity,
    ChooseBranch,
    Guard,
    Implementations,
    Invocation,
    Machine,
    StateNode,
    Transition,
)
from .typegen_config import TYPEGEN_CONFIG

# W3C SCXML namespace
SCXML_URI = 'http://www.w3.org/2005/07/scxml'
SCXML_NS = {'sc': SCXML_URI}

INTERNAL = TYPEGEN_CONFIG['internal']

# Guards written as a bare identifier refer to an implementation by name
GUARD_NAME_RE = re.compile(r'^[A-Za-z_$][\w$]*$')

STATE_TAGS = {'state': 'atomic', 'parallel': 'parallel', 'final': 'final', 'history': 'history'}


def ns_find(elem, tag):
    """Find element with namespace"""
    return elem.find(f'sc:{tag}', SCXML_NS)


def ns_findall(elem, tag):
    """Find all elements with namespace"""
    return elem.findall(f'sc:{tag}', SCXML_NS)


def is_scxml_element(elem) -> bool:
    return isinstance(elem.tag, str) and etree.QName(elem).namespace == SCXML_URI


class SCXMLLoader:
    """
    W3C SCXML loader

    Builds StateNode trees from <state>, <parallel>, <final> and <history>
    elements. SCXML ids are global, so each node's key is its id.
    """

    def __init__(self):
        self.invoke_counter = 0

    def parse_file(self, scxml_path: str, implementations=None) -> Machine:
        """
        Parse SCXML file and return a Machine

        Args:
            scxml_path: Path to SCXML file
            implementations: Optional Implementations (or mapping) already supplied

        Returns:
            Machine with the parsed state tree
        """
        tree = etree.parse(str(scxml_path))
        return self._build(tree.getroot(), Path(scxml_path).stem, implementations)

    def parse_string(self, text: str, implementations=None) -> Machine:
        """Parse SCXML from a string"""
        root = etree.fromstring(text.encode('utf-8') if isinstance(text, str) else text)
        return self._build(root, '', implementations)

    def _build(self, root_elem, default_name: str, implementations) -> Machine:
        if etree.QName(root_elem).localname != 'scxml':
            raise ValueError(f"Expected <scxml> root element, got <{etree.QName(root_elem).localname}>")

        self.invoke_counter = 0
        name = root_elem.get('name') or default_name or TYPEGEN_CONFIG['machine']['default_root_id']

        root = StateNode(id=name, key=name, path=[], type='compound')
        self._parse_children(root_elem, root)
        root.initial = self._resolve_initial(root, root_elem.get('initial', ''))

        if not isinstance(implementations, Implementations):
            implementations = Implementations.from_dict(implementations)

        return Machine(root, implementations=implementations, has_types_node=self._has_types_marker(root_elem))

    def _has_types_marker(self, root_elem) -> bool:
        for attr_name, value in root_elem.attrib.items():
            if etree.QName(attr_name).localname == 'typegen' and value.lower() == 'true':
                return True
        return False

    def _parse_children(self, parent_elem, parent: StateNode):
        """
        Recursively parse child states (W3C SCXML 3.3) in document order

        Args:
            parent_elem: Parent XML element
            parent: Parent StateNode
        """
        for child_elem in parent_elem:
            if not is_scxml_element(child_elem):
                continue
            tag = etree.QName(child_elem).localname
            if tag not in STATE_TAGS:
                continue

            state_id = child_elem.get('id')
            if not state_id:
                raise ValueError(f"<{tag}> inside '{parent.id}' has no id attribute")

            node = StateNode(
                id=state_id,
                key=state_id,
                path=parent.path + [state_id],
                parent=parent,
                type=STATE_TAGS[tag],
            )
            parent.states[state_id] = node

            if tag == 'history':
                # W3C SCXML 3.11: Default transition of the history pseudo-state
                for trans_elem in ns_findall(child_elem, 'transition'):
                    node.transitions.extend(self._parse_transition(trans_elem))
                continue

            for trans_elem in ns_findall(child_elem, 'transition'):
                node.transitions.extend(self._parse_transition(trans_elem))

            for entry_elem in ns_findall(child_elem, 'onentry'):
                node.on_entry.extend(self._parse_executable_content(entry_elem))

            for exit_elem in ns_findall(child_elem, 'onexit'):
                node.on_exit.extend(self._parse_executable_content(exit_elem))

            for invoke_elem in ns_findall(child_elem, 'invoke'):
                invocation = self._parse_invoke(invoke_elem, node)
                node.invoke.append(invocation)
                node.activities.append(Activity(type=INTERNAL['invoke_activity'], id=invocation.id))

            self._parse_children(child_elem, node)

            if node.states and node.type == 'atomic':
                node.type = 'compound'

            if node.type == 'compound':
                initial = child_elem.get('initial', '')
                # W3C SCXML 3.3.2: <initial> child holding a transition
                initial_elem = ns_find(child_elem, 'initial')
                if initial_elem is not None:
                    initial_trans = ns_find(initial_elem, 'transition')
                    if initial_trans is not None:
                        initial = initial or initial_trans.get('target', '')
                        # Runs after <onentry>, whenever the state is initialized
                        node.on_entry.extend(self._parse_executable_content(initial_trans))
                node.initial = self._resolve_initial(node, initial)

    def _resolve_initial(self, node: StateNode, initial: str) -> Optional[str]:
        """
        Resolve an initial attribute to the key of a direct child

        W3C SCXML 3.6: initial may name any descendant; the child containing
        it is the one entered. Without initial the first child in document
        order (history excluded) is used.
        """
        if initial:
            for target_id in initial.split():
                for key, child in node.states.items():
                    if any(descendant.id == target_id for descendant in child.iter_nodes()):
                        return key
            raise ValueError(
                f"W3C SCXML 3.6: Invalid initial target '{initial}' in state '{node.id}'. "
                f"Initial attribute references non-existent state."
            )

        for key, child in node.states.items():
            if child.type != 'history':
                return key
        return None

    def _parse_transition(self, trans_elem) -> List[Transition]:
        """
        Parse <transition> element (W3C SCXML 3.5)

        A space-separated event list yields one Transition per event; a
        transition without event is eventless.
        """
        events = trans_elem.get('event', '').split() or [TYPEGEN_CONFIG['events']['always']]
        target_ids = trans_elem.get('target', '').split()
        guard = self._parse_guard(trans_elem.get('cond', ''))
        actions = self._parse_executable_content(trans_elem)

        return [
            Transition(event_type=event, target_ids=list(target_ids), cond=guard, actions=list(actions))
            for event in events
        ]

    def _parse_guard(self, cond: str) -> Optional[Guard]:
        if not cond:
            return None
        cond = cond.strip()
        if GUARD_NAME_RE.match(cond) and cond not in ('true', 'false'):
            return Guard(name=cond)
        # Expressions are inline and cannot be implemented by name
        return Guard(name=INTERNAL['unnamed_guard'])

    def _parse_executable_content(self, parent_elem) -> List[ActionObject]:
        """
        Parse executable content (W3C SCXML 4)

        Handles: raise, send, assign, log, script, cancel, foreach, if plus
        custom actions from foreign namespaces.
        """
        return self._parse_actions(list(parent_elem))

    def _parse_actions(self, elements) -> List[ActionObject]:
        actions = []

        for child in elements:
            # Skip comments and processing instructions
            if not isinstance(child.tag, str):
                continue
            qname = etree.QName(child)

            if qname.namespace != SCXML_URI:
                # W3C SCXML 4.1: Platform-specific executable content
                actions.append(ActionObject(type=child.get('name') or qname.localname))
            elif qname.localname == 'if':
                actions.append(self._parse_if(child))
            elif qname.localname in ('transition', 'param', 'content'):
                continue
            elif qname.localname == 'foreach':
                # W3C SCXML 4.6: the body runs once per item, under the same trigger
                actions.append(ActionObject(type=INTERNAL['prefix'] + qname.localname))
                actions.extend(self._parse_actions(list(child)))
            else:
                actions.append(ActionObject(type=INTERNAL['prefix'] + qname.localname))

        return actions

    def _parse_if(self, if_elem) -> ActionObject:
        """
        Parse <if>/<elseif>/<else> (W3C SCXML 4.3) into xstate.choose

        Actions after <if> but before <elseif>/<else> form the first branch,
        each <elseif> opens a guarded branch and <else> opens the default one.
        """
        branches = [ChooseBranch(cond=self._branch_cond(if_elem.get('cond', '')), actions=[])]

        for child in if_elem:
            if not isinstance(child.tag, str):
                continue
            qname = etree.QName(child)
            if qname.namespace == SCXML_URI and qname.localname == 'elseif':
                branches.append(ChooseBranch(cond=self._branch_cond(child.get('cond', '')), actions=[]))
            elif qname.namespace == SCXML_URI and qname.localname == 'else':
                branches.append(ChooseBranch(cond=None, actions=[]))
            else:
                for action in self._parse_actions([child]):
                    # Nested <if> keeps its own branches and guards
                    if action.type == INTERNAL['choose_action']:
                        branches[-1].actions.append(action)
                    else:
                        branches[-1].actions.append(action.type)

        return ActionObject(type=INTERNAL['choose_action'], conds=branches)

    def _branch_cond(self, cond: str):
        guard = self._parse_guard(cond)
        if guard is None or guard.name == INTERNAL['unnamed_guard']:
            # Inline expressions stay Guard objects, never registered by name
            return guard
        return guard.name

    def _parse_invoke(self, invoke_elem, node: StateNode) -> Invocation:
        """Parse <invoke> element (W3C SCXML 6.4)"""
        invoke_id = invoke_elem.get('id', '')
        if not invoke_id:
            invoke_id = TYPEGEN_CONFIG['machine']['invoke_id'].format(id=node.id, index=self.invoke_counter)
            self.invoke_counter += 1

        # srcexpr and inline <content> are evaluated at runtime: anonymous
        src = invoke_elem.get('src') or None
        return Invocation(src=src, id=invoke_id)


def load_scxml_file(scxml_path: str, implementations=None) -> Machine:
    return SCXMLLoader().parse_file(scxml_path, implementations)


if __name__ == '__main__':
    import sys

    if len(sys.argv) < 2:
        print("Usage: python -m statetypegen.scxml_loader <scxml_file>")
        sys.exit(1)

    machine = load_scxml_file(sys.argv[1])

    print(f"Machine: {machine.id}")
    print(f"Initial: {machine.root.initial}")
    print(f"States: {len(machine.state_ids)}")
    print(f"Typegen marker: {machine.has_types_node}")

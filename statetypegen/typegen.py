"""
Typegen Generator (Python + Jinja2)

Renders typed Python declarations from introspection results: which
guards, actions, services, activities and delays a machine references, the
events causing each of them and which ones still need an implementation.
"""

import json
import logging
import re
from pathlib import Path
from typing import List, Optional, Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape

from .introspect import IntrospectionResult
from .typegen_config import TYPEGEN_CONFIG, get_generated_header

logger = logging.getLogger(__name__)

# Callable signature expected for each extension-point category
CATEGORY_SIGNATURES = {
    'guards': 'Callable[..., bool]',
    'actions': 'Callable[..., None]',
    'services': 'Callable[..., Any]',
    'activities': 'Callable[..., Any]',
    'delays': 'Union[int, Callable[..., int]]',
}


class TypegenGenerator:
    """
    Typegen generator for introspected state machines

    Uses Jinja2 templates to render one Python module per source file.
    """

    def __init__(self, template_dir=None):
        if template_dir is None:
            template_dir = Path(__file__).parent / 'templates'

        # Setup Jinja2 environment
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(['html', 'xml']),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

        # Add custom filters
        self.env.filters['identifier'] = self._identifier
        self.env.filters['pystr'] = self._python_string
        self.env.filters['pytuple'] = self._python_tuple

    def _identifier(self, name):
        """CamelCase identifier for a machine id, e.g. 'traffic-light' -> 'TrafficLight'"""
        parts = [part for part in re.split(r'[^0-9A-Za-z]+', name or '') if part]
        if not parts:
            return 'Machine'
        identifier = ''.join(part[0].upper() + part[1:] for part in parts)
        if identifier[0].isdigit():
            identifier = 'Machine' + identifier
        return identifier

    def _python_string(self, text):
        """Python string literal (JSON escaping is valid Python escaping)"""
        return json.dumps(text if text is not None else '', ensure_ascii=False)

    def _python_tuple(self, items):
        """Python tuple literal of strings"""
        items = [self._python_string(item) for item in items]
        if not items:
            return '()'
        if len(items) == 1:
            return f"({items[0]},)"
        return f"({', '.join(items)})"

    def _machine_context(self, result: IntrospectionResult, used_prefixes: set) -> dict:
        prefix = self._identifier(result.machine_id)
        base, counter = prefix, 1
        while prefix in used_prefixes:
            prefix = f"{base}{counter}"
            counter += 1
        used_prefixes.add(prefix)

        categories = []
        for category, report in result.categories().items():
            categories.append({
                'name': category,
                'title': category.capitalize(),
                'signature': CATEGORY_SIGNATURES[category],
                'report': report,
                'missing': [line.name for line in report.lines if line.required],
            })

        return {
            'id': result.machine_id,
            'prefix': prefix,
            'state_values': ['.'.join(path) for path in result.state_matches],
            'categories': categories,
            'required': result.required,
        }

    def render(self, results: Sequence[IntrospectionResult], source_name: str = '') -> str:
        """
        Render the typegen module for the machines of one source file

        Args:
            results: Introspection results, one per machine
            source_name: Source file name written into the header

        Returns:
            Python module text
        """
        template = self.env.get_template(TYPEGEN_CONFIG['output']['template'])
        used_prefixes: set = set()
        machines = [self._machine_context(result, used_prefixes) for result in results]
        return template.render(header=get_generated_header(source_name), machines=machines)


def typegen_path_for(source_path: str, output_dir: Optional[str] = None) -> Path:
    """
    Path of the generated module for a machine source file

    'machines/light.json' -> 'machines/light_typegen.py'
    """
    source = Path(source_path)
    stem = source.stem if source.suffix in TYPEGEN_CONFIG['output']['source_suffixes'] else source.name
    directory = Path(output_dir) if output_dir else source.parent
    return directory / f"{stem}{TYPEGEN_CONFIG['output']['suffix']}"


def write_typegen_file(source_path: str, results: List[IntrospectionResult],
                       output_dir: Optional[str] = None,
                       generator: Optional[TypegenGenerator] = None) -> Optional[Path]:
    """
    Write or remove the typegen module of one source file

    The module is written only when at least one machine declares the
    typed-output marker; otherwise a previously generated module is removed.
    I/O failures are logged, not raised.

    Returns:
        Path written, or None when nothing was written
    """
    path_to_save = typegen_path_for(source_path, output_dir)

    if not any(result.has_types_node for result in results):
        try:
            path_to_save.unlink()
            logger.info("Removed stale typegen file %s", path_to_save)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error("Failed to remove typegen file %s: %s", path_to_save, e)
        return None

    generator = generator or TypegenGenerator()
    output = generator.render(results, Path(source_path).name)

    try:
        path_to_save.parent.mkdir(parents=True, exist_ok=True)
        with open(path_to_save, 'w', encoding='utf-8') as f:
            f.write(output)
    except OSError as e:
        logger.error("Failed to write typegen file %s: %s", path_to_save, e)
        return None

    logger.info("Wrote typegen file %s", path_to_save)
    return path_to_save

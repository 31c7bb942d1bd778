"""
Measure compiler.

Turns a MeasureDefinition into an executable CompiledMeasure. The
definition's logic fragment (``map_fn``) is a template in ERB-style
delimiters; the four runtime bindings are substituted with accessors on the
``options`` passed to ``generate``, so a fragment reads, for example::

    hqmfjs.effective_date = <%= effective_date %>
    if <%= enable_logging %>:
        hqmfjs.log = []

The rendered fragment is parsed and its statements are spliced, as parsed,
into the body of a ``generate(self, options)`` function compiled in its own
namespace, attached to a fresh CompiledMeasure subclass named after the
measure.
"""

import ast
import copy
import keyword
import logging
import re
import typing

from collections.abc import Mapping
from dataclasses import dataclass, fields

import jinja2

from .definition import MeasureDefinition

logger = logging.getLogger(__name__)

# Runtime binding name → expression substituted into the fragment
RUNTIME_BINDINGS = {
    "effective_date": "options.effective_date",
    "enable_logging": "options.enable_logging",
    "enable_rationale": "options.enable_rationale",
    "short_circuit": "options.short_circuit",
}

_GENERATE_STUB = """\
def generate(self, options=None):
    options = GenerateOptions.coerce(options)
    hqmfjs = ResultContainer()
    return hqmfjs
"""

_INVALID_NAME_CHARS = re.compile(r"\W")

# <%= expr %>, <% block %>, <%# comment %>; leaves Python's braces alone
_TEMPLATES = jinja2.Environment(
    block_start_string="<%",
    block_end_string="%>",
    variable_start_string="<%=",
    variable_end_string="%>",
    comment_start_string="<%#",
    comment_end_string="%>",
    undefined=jinja2.StrictUndefined,
    keep_trailing_newline=True,
    autoescape=False,
)


class MeasureCompileError(RuntimeError):
    """Raised when a measure definition's logic fragment cannot be compiled."""


@dataclass
class GenerateOptions:
    """
    Runtime options for ``CompiledMeasure.generate``.

    Attributes:
        effective_date: End of the measurement period, as the fragment expects it.
        enable_logging: Whether the fragment should emit its own execution log.
        enable_rationale: Whether the fragment should record rationale.
        short_circuit: Whether the fragment may stop evaluating early.
    """

    effective_date: typing.Any = None
    enable_logging: typing.Any = None
    enable_rationale: typing.Any = None
    short_circuit: typing.Any = None

    @classmethod
    def coerce(cls, options: typing.Any) -> "GenerateOptions":
        """
        Accept None, GenerateOptions, a mapping or any object with attributes.
        Unrecognized fields are ignored, missing ones read as None.
        """
        if isinstance(options, cls):
            return options
        names = [f.name for f in fields(cls)]
        if options is None:
            return cls()
        if isinstance(options, Mapping):
            return cls(**{name: options.get(name) for name in names})
        return cls(**{name: getattr(options, name, None) for name in names})


class ResultContainer(dict):
    """
    Result of one ``generate`` call. A dict that also allows attribute access,
    so fragments may write ``hqmfjs.ran = True`` or ``hqmfjs["ran"] = True``.
    """

    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name, value):
        self[name] = value

    def __delattr__(self, name):
        try:
            del self[name]
        except KeyError:
            raise AttributeError(name) from None


class CompiledMeasure:
    """
    Base class of every compiled measure. Carries a copy of the definition's
    metadata; subclasses created by ``compile_measure`` supply ``generate``.
    """

    def __init__(self, definition: MeasureDefinition):
        self.hqmf_id = definition.hqmf_id
        self.sub_id = definition.sub_id
        self.cms_id = definition.cms_id
        self.continuous_variable = definition.continuous_variable
        self.aggregator = definition.aggregator
        self.population_ids = copy.deepcopy(definition.population_ids)
        self.measure = copy.deepcopy(definition.measure)

    def generate(self, options: typing.Any = None) -> ResultContainer:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} hqmf_id={self.hqmf_id!r} sub_id={self.sub_id!r}>"


def measure_class_name(definition: MeasureDefinition) -> str:
    """
    Name of the compiled class: cms_id plus sub_id when both are present,
    cms_id alone, or the hqmf_id when there is no cms_id.
    """
    if definition.cms_id:
        name = f"{definition.cms_id}{definition.sub_id or ''}"
    else:
        name = f"{definition.hqmf_id}{definition.sub_id or ''}"
    name = _INVALID_NAME_CHARS.sub("_", name)
    if not name or name[0].isdigit() or keyword.iskeyword(name):
        name = f"Measure_{name}"
    return name


def render_logic(map_fn: str) -> str:
    """
    Substitute the runtime bindings into a logic fragment template.
    Raises MeasureCompileError for template syntax errors or unknown names.
    """
    try:
        return _TEMPLATES.from_string(map_fn).render(**RUNTIME_BINDINGS)
    except jinja2.TemplateError as e:
        raise MeasureCompileError(f"Invalid logic fragment: {e}") from e


def parse_logic(logic: str, filename: str = "<logic>") -> list[ast.stmt]:
    """
    Parse a rendered fragment into statements, leaving its text untouched.
    A fragment indented as a whole is parsed as the body of an ``if`` block,
    so string literals spanning lines keep their exact contents.
    """
    first_line = next((line for line in logic.splitlines() if line.strip()), "")
    if not first_line[:1].isspace():
        return ast.parse(logic, filename).body

    statements = ast.parse("if True:\n" + logic, filename).body[0].body
    for statement in statements:
        ast.increment_lineno(statement, -1)
    return statements


def _generate_module(statements: list[ast.stmt]) -> ast.Module:
    module = ast.parse(_GENERATE_STUB)
    generate = module.body[0]
    # fragment runs between the ResultContainer binding and the return
    generate.body[2:2] = statements
    return ast.fix_missing_locations(module)


def compile_measure(definition: MeasureDefinition) -> CompiledMeasure:
    """
    Compile a definition into a single CompiledMeasure instance.

    Each call builds its own namespace for the synthesized ``generate``, so
    compiled measures never see one another's names.
    """
    class_name = measure_class_name(definition)
    filename = f"<measure {class_name}>"
    logic = render_logic(definition.map_fn)

    namespace: dict[str, typing.Any] = {
        "GenerateOptions": GenerateOptions,
        "ResultContainer": ResultContainer,
    }
    try:
        statements = parse_logic(logic, filename)
    except (SyntaxError, ValueError) as e:
        raise MeasureCompileError(
            f"Logic fragment of {class_name} (hqmf_id {definition.hqmf_id!r}) is not valid Python: {e}"
        ) from e
    exec(compile(_generate_module(statements), filename, "exec"), namespace)

    generate = namespace["generate"]
    generate.__qualname__ = f"{class_name}.generate"
    measure_class = type(
        class_name,
        (CompiledMeasure,),
        {"generate": generate, "__module__": __name__, "__qualname__": class_name},
    )
    logger.debug(f"Compiled {class_name} from hqmf_id {definition.hqmf_id!r}")
    return measure_class(definition)

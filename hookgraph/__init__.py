# Hookgraph
#
# Typed node graphs for process instrumentation, compiled into ordered
# host/target statement plans.

from .schema import (
	NodeCategory,
	ExecutionContext,
	PortType,
	PortSpec,
	NodeTemplate,
	Position,
	ScriptNode,
	Connection,
	ScriptVariable,
	Script,
	Project,
)

from .errors import (
	ErrorKind,
	Diagnostic,
	GraphError,
	UnknownNodeType,
	NotFound,
	TypeMismatch,
	PortOccupied,
	ContextViolation,
	CyclicGraph,
)

from .catalog  import NodeCatalog
from .builtin  import build_default_catalog
from .search   import CategoryFilter, RecentNodes, SearchSession, search
from .graph    import GraphModel
from .editor   import EditorMode, EditOutcome, GraphEditor
from .compiler import CompileResult, ScriptCompiler, Statement
from .listing  import render_listing

__all__ = [
	# Data model
	"NodeCategory",
	"ExecutionContext",
	"PortType",
	"PortSpec",
	"NodeTemplate",
	"Position",
	"ScriptNode",
	"Connection",
	"ScriptVariable",
	"Script",
	"Project",
	# Errors
	"ErrorKind",
	"Diagnostic",
	"GraphError",
	"UnknownNodeType",
	"NotFound",
	"TypeMismatch",
	"PortOccupied",
	"ContextViolation",
	"CyclicGraph",
	# Core
	"NodeCatalog",
	"build_default_catalog",
	"CategoryFilter",
	"RecentNodes",
	"SearchSession",
	"search",
	"GraphModel",
	"EditorMode",
	"EditOutcome",
	"GraphEditor",
	"CompileResult",
	"ScriptCompiler",
	"Statement",
	"render_listing",
]

# builtin
#
# Node templates registered at startup by the hosting shell.

from   typing  import Any, Dict, List, Optional


from   .catalog import NodeCatalog
from   .schema  import ExecutionContext, NodeCategory, NodeTemplate, PortSpec, PortType


HOST   = ExecutionContext.HOST
TARGET = ExecutionContext.TARGET

FLOW    = PortType.FLOW
NUMBER  = PortType.NUMBER
STRING  = PortType.STRING
BOOLEAN = PortType.BOOLEAN
POINTER = PortType.POINTER
BYTES   = PortType.BYTES
ANY     = PortType.ANY


def _p(name: str, ptype: PortType, loop_back: bool = False) -> PortSpec:
	return PortSpec(name=name, type=ptype, loop_back=loop_back)


EXEC_IN   = _p("exec", FLOW)
EXEC_OUT  = _p("exec", FLOW)
LOOP_NEXT = _p("next", FLOW, loop_back=True)


def _t(
	type        : str,
	category    : NodeCategory,
	context     : ExecutionContext,
	label       : str,
	description : str,
	inputs      : Optional[List[PortSpec]] = None,
	outputs     : Optional[List[PortSpec]] = None,
	params      : Optional[Dict[str, Any]] = None,
	icon        : str  = "",
	bridge      : bool = False,
	loop        : bool = False,
) -> NodeTemplate:
	return NodeTemplate(
		type         = type,
		category     = category,
		context      = context,
		label        = label,
		description  = description,
		icon         = icon,
		input_ports  = inputs  or [],
		output_ports = outputs or [],
		parameters   = params  or {},
		bridge       = bridge,
		loop         = loop,
	)


C = NodeCategory


BUILTIN_TEMPLATES: List[NodeTemplate] = [
	# Constants
	_t("const_string" , C.CONSTANTS, HOST, "String"      , "Constant string value" , outputs=[_p("value", STRING )], params={"value": ""   }),
	_t("const_number" , C.CONSTANTS, HOST, "Number"      , "Constant number value" , outputs=[_p("value", NUMBER )], params={"value": 0    }),
	_t("const_boolean", C.CONSTANTS, HOST, "Boolean"     , "Constant boolean value", outputs=[_p("value", BOOLEAN)], params={"value": False}),
	_t("const_pointer", C.CONSTANTS, HOST, "Pointer"     , "Constant address"      , outputs=[_p("value", POINTER)], params={"value": "0x0"}),

	# Events
	_t("event_ui"      , C.EVENTS, HOST  , "UI Event"      , "Fires when a UI component changes",
		outputs=[EXEC_OUT, _p("value", ANY), _p("componentId", STRING)], params={"componentId": ""}),
	_t("event_attach"  , C.EVENTS, HOST  , "On Attach"     , "Fires after attaching to the target process",
		outputs=[EXEC_OUT, _p("pid", NUMBER)]),
	_t("event_detach"  , C.EVENTS, HOST  , "On Detach"     , "Fires after detaching from the target process",
		outputs=[EXEC_OUT]),
	_t("event_hotkey"  , C.EVENTS, HOST  , "Hotkey"        , "Fires when a hotkey is pressed",
		outputs=[EXEC_OUT], params={"hotkey": ""}),
	_t("event_interval", C.EVENTS, HOST  , "Interval"      , "Fires periodically",
		outputs=[EXEC_OUT, _p("tick", NUMBER)], params={"intervalMs": 1000}),
	_t("event_hook"    , C.EVENTS, TARGET, "Hook Event"    , "Fires inside the target when a hooked function is entered",
		outputs=[EXEC_OUT, _p("args", POINTER), _p("retval", ANY)], params={"address": "0x0"}),

	# Flow
	_t("if"       , C.FLOW, HOST, "If"       , "Conditional branch",
		inputs=[EXEC_IN, _p("condition", BOOLEAN)], outputs=[_p("true", FLOW), _p("false", FLOW)], params={"condition": False}),
	_t("switch"   , C.FLOW, HOST, "Switch"   , "Branch on a value",
		inputs=[EXEC_IN, _p("value", ANY)], outputs=[_p("case0", FLOW), _p("case1", FLOW), _p("default", FLOW)], params={"cases": []}),
	_t("for_each" , C.FLOW, HOST, "For Each" , "Iterate over the elements of an array",
		inputs=[EXEC_IN, _p("array", ANY), LOOP_NEXT], outputs=[_p("body", FLOW), _p("done", FLOW), _p("element", ANY), _p("index", NUMBER)],
		params={"maxIterations": 10000}, loop=True),
	_t("for_range", C.FLOW, HOST, "For Range", "Iterate over a numeric range",
		inputs=[EXEC_IN, _p("start", NUMBER), _p("end", NUMBER), _p("step", NUMBER), LOOP_NEXT], outputs=[_p("body", FLOW), _p("done", FLOW), _p("index", NUMBER)],
		params={"start": 0, "end": 10, "step": 1, "maxIterations": 10000}, loop=True),
	_t("loop"     , C.FLOW, HOST, "Loop"     , "Repeat execution while condition is true",
		inputs=[EXEC_IN, _p("condition", BOOLEAN), LOOP_NEXT], outputs=[_p("body", FLOW), _p("done", FLOW), _p("index", NUMBER)],
		params={"maxIterations": 1000}, loop=True),
	_t("break"    , C.FLOW, HOST, "Break"    , "Leave the innermost loop"   , inputs=[EXEC_IN]),
	_t("continue" , C.FLOW, HOST, "Continue" , "Skip to the next iteration" , inputs=[EXEC_IN]),
	_t("delay"    , C.FLOW, HOST, "Delay"    , "Wait for specified milliseconds",
		inputs=[EXEC_IN, _p("ms", NUMBER)], outputs=[EXEC_OUT], params={"ms": 100}),

	# Memory
	_t("memory_scan"   , C.MEMORY, TARGET, "Memory Scan"   , "Scan memory for value/pattern",
		inputs=[EXEC_IN, _p("value", ANY), _p("pattern", STRING)], outputs=[EXEC_OUT, _p("results", POINTER), _p("count", NUMBER)],
		params={"scanType": "value", "protection": "rw-"}),
	_t("memory_read"   , C.MEMORY, TARGET, "Read Memory"   , "Read value from memory address",
		inputs=[EXEC_IN, _p("address", POINTER)], outputs=[EXEC_OUT, _p("value", ANY)], params={"valueType": "int32"}),
	_t("memory_write"  , C.MEMORY, TARGET, "Write Memory"  , "Write value to memory address",
		inputs=[EXEC_IN, _p("address", POINTER), _p("value", ANY)], outputs=[EXEC_OUT], params={"valueType": "int32"}),
	_t("memory_freeze" , C.MEMORY, TARGET, "Freeze Memory" , "Continuously write value to freeze it",
		inputs=[EXEC_IN, _p("address", POINTER), _p("value", ANY), _p("enabled", BOOLEAN)], outputs=[EXEC_OUT],
		params={"valueType": "int32", "intervalMs": 100, "enabled": True}),
	_t("memory_alloc"  , C.MEMORY, TARGET, "Allocate Memory", "Allocate a block in the target",
		inputs=[EXEC_IN, _p("size", NUMBER)], outputs=[EXEC_OUT, _p("address", POINTER)], params={"size": 4096}),
	_t("memory_protect", C.MEMORY, TARGET, "Protect Memory", "Change page protection",
		inputs=[EXEC_IN, _p("address", POINTER), _p("size", NUMBER)], outputs=[EXEC_OUT, _p("ok", BOOLEAN)], params={"protection": "rwx"}),

	# Pointer
	_t("pointer_add"  , C.POINTER, TARGET, "Pointer Add"  , "Offset an address",
		inputs=[_p("base", POINTER), _p("offset", NUMBER)], outputs=[_p("result", POINTER)], params={"offset": 0}),
	_t("pointer_read" , C.POINTER, TARGET, "Read Pointer" , "Dereference a pointer chain",
		inputs=[EXEC_IN, _p("address", POINTER)], outputs=[EXEC_OUT, _p("value", POINTER)], params={"offsets": []}),
	_t("pointer_write", C.POINTER, TARGET, "Write Pointer", "Store an address at a pointer",
		inputs=[EXEC_IN, _p("address", POINTER), _p("value", POINTER)], outputs=[EXEC_OUT]),

	# Module
	_t("get_module"       , C.MODULE, TARGET, "Get Module"       , "Get module info by name",
		inputs=[EXEC_IN, _p("name", STRING)], outputs=[EXEC_OUT, _p("base", POINTER), _p("size", NUMBER)], params={"name": ""}),
	_t("find_symbol"      , C.MODULE, TARGET, "Find Symbol"      , "Find exported symbol in module",
		inputs=[EXEC_IN, _p("module", STRING), _p("symbol", STRING)], outputs=[EXEC_OUT, _p("address", POINTER)], params={"module": "", "symbol": ""}),
	_t("get_base_address" , C.MODULE, TARGET, "Get Base Address" , "Get module base address",
		inputs=[EXEC_IN, _p("moduleName", STRING)], outputs=[EXEC_OUT, _p("address", POINTER)], params={"moduleName": ""}),
	_t("enumerate_modules", C.MODULE, TARGET, "Enumerate Modules", "List loaded modules",
		inputs=[EXEC_IN], outputs=[EXEC_OUT, _p("modules", ANY)]),
	_t("enumerate_exports", C.MODULE, TARGET, "Enumerate Exports", "List exports of a module",
		inputs=[EXEC_IN, _p("module", STRING)], outputs=[EXEC_OUT, _p("exports", ANY)], params={"module": ""}),

	# Variable
	_t("declare_variable", C.VARIABLE, HOST, "Declare Variable", "Declare a script variable",
		inputs=[EXEC_IN, _p("initial", ANY)], outputs=[EXEC_OUT], params={"variableId": "", "initial": None}),
	_t("set_variable"    , C.VARIABLE, HOST, "Set Variable"    , "Store a value in a variable",
		inputs=[EXEC_IN, _p("value", ANY)], outputs=[EXEC_OUT], params={"variableId": ""}),
	_t("get_variable"    , C.VARIABLE, HOST, "Get Variable"    , "Retrieve a value from a variable",
		outputs=[_p("value", ANY)], params={"variableId": ""}),

	# Array
	_t("array_create", C.ARRAY, HOST, "Create Array", "Create an empty array"    , outputs=[_p("array", ANY)]),
	_t("array_get"   , C.ARRAY, HOST, "Array Get"   , "Read an element by index" ,
		inputs=[_p("array", ANY), _p("index", NUMBER)], outputs=[_p("element", ANY)], params={"index": 0}),
	_t("array_push"  , C.ARRAY, HOST, "Array Push"  , "Append an element",
		inputs=[EXEC_IN, _p("array", ANY), _p("element", ANY)], outputs=[EXEC_OUT, _p("array", ANY)]),
	_t("array_length", C.ARRAY, HOST, "Array Length", "Number of elements"       ,
		inputs=[_p("array", ANY)], outputs=[_p("length", NUMBER)]),

	# Object
	_t("object_get" , C.OBJECT, HOST, "Object Get" , "Read a property"  , inputs=[_p("object", ANY), _p("key", STRING)], outputs=[_p("value", ANY)], params={"key": ""}),
	_t("object_set" , C.OBJECT, HOST, "Object Set" , "Write a property" ,
		inputs=[EXEC_IN, _p("object", ANY), _p("key", STRING), _p("value", ANY)], outputs=[EXEC_OUT, _p("object", ANY)], params={"key": ""}),
	_t("object_keys", C.OBJECT, HOST, "Object Keys", "List property names", inputs=[_p("object", ANY)], outputs=[_p("keys", ANY)]),

	# Math
	_t("math"   , C.MATH, HOST, "Math"   , "Perform math operation"        ,
		inputs=[_p("a", NUMBER), _p("b", NUMBER)], outputs=[_p("result", NUMBER)], params={"operation": "add", "a": 0, "b": 0}),
	_t("compare", C.MATH, HOST, "Compare", "Compare two values"            ,
		inputs=[_p("a", ANY), _p("b", ANY)], outputs=[_p("result", BOOLEAN)], params={"operation": "equals"}),
	_t("logic"  , C.MATH, HOST, "Logic"  , "Logic operation (and, or, not)",
		inputs=[_p("a", BOOLEAN), _p("b", BOOLEAN)], outputs=[_p("result", BOOLEAN)], params={"operation": "and", "a": False, "b": False}),

	# String
	_t("string_format", C.STRING, HOST, "Format String", "Substitute values into a template",
		inputs=[_p("template", STRING), _p("value", ANY)], outputs=[_p("result", STRING)], params={"template": "{0}"}),
	_t("string_concat", C.STRING, HOST, "Concat"       , "Join two strings",
		inputs=[_p("a", STRING), _p("b", STRING)], outputs=[_p("result", STRING)], params={"a": "", "b": ""}),

	# Conversion
	_t("to_string"  , C.CONVERSION, HOST, "To String"   , "Convert a value to text"      , inputs=[_p("value", ANY    )], outputs=[_p("result", STRING )]),
	_t("parse_int"  , C.CONVERSION, HOST, "Parse Int"   , "Parse an integer from text"   , inputs=[_p("text" , STRING )], outputs=[_p("result", NUMBER )], params={"radix": 10}),
	_t("parse_float", C.CONVERSION, HOST, "Parse Float" , "Parse a float from text"      , inputs=[_p("text" , STRING )], outputs=[_p("result", NUMBER )]),
	_t("to_pointer" , C.CONVERSION, HOST, "To Pointer"  , "Interpret a number as address", inputs=[_p("value", NUMBER )], outputs=[_p("result", POINTER)]),
	_t("bytes_to_hex", C.CONVERSION, HOST, "Bytes To Hex", "Hex-encode raw bytes"        , inputs=[_p("data" , BYTES  )], outputs=[_p("result", STRING )]),

	# Native
	_t("call_native"    , C.NATIVE, TARGET, "Call Native"    , "Call a native function",
		inputs=[EXEC_IN, _p("address", POINTER), _p("arg0", ANY), _p("arg1", ANY), _p("arg2", ANY), _p("arg3", ANY)],
		outputs=[EXEC_OUT, _p("return", ANY)], params={"returnType": "void", "argTypes": []}),
	_t("native_callback", C.NATIVE, TARGET, "Native Callback", "Expose a callback pointer to native code",
		inputs=[EXEC_IN], outputs=[EXEC_OUT, _p("pointer", POINTER)], params={"returnType": "void", "argTypes": []}),

	# Interceptor
	_t("interceptor_attach" , C.INTERCEPTOR, TARGET, "Attach Interceptor" , "Hook a function at address",
		inputs=[EXEC_IN, _p("address", POINTER)], outputs=[EXEC_OUT, _p("onEnter", FLOW), _p("onLeave", FLOW), _p("listener", ANY)],
		params={"onEnter": True, "onLeave": True}),
	_t("interceptor_replace", C.INTERCEPTOR, TARGET, "Replace Function"   , "Replace a function implementation",
		inputs=[EXEC_IN, _p("address", POINTER), _p("replacement", POINTER)], outputs=[EXEC_OUT]),
	_t("interceptor_detach" , C.INTERCEPTOR, TARGET, "Detach Interceptor" , "Remove a hook",
		inputs=[EXEC_IN, _p("listener", ANY)], outputs=[EXEC_OUT]),
	_t("read_arg"           , C.INTERCEPTOR, TARGET, "Read Argument"      , "Read a hooked function argument",
		inputs=[_p("index", NUMBER)], outputs=[_p("value", POINTER)], params={"index": 0}),
	_t("write_arg"          , C.INTERCEPTOR, TARGET, "Write Argument"     , "Overwrite a hooked function argument",
		inputs=[EXEC_IN, _p("index", NUMBER), _p("value", POINTER)], outputs=[EXEC_OUT], params={"index": 0}),
	_t("read_retval"        , C.INTERCEPTOR, TARGET, "Read Return Value"  , "Read the hooked return value",
		outputs=[_p("value", POINTER)]),
	_t("replace_retval"     , C.INTERCEPTOR, TARGET, "Replace Return Value", "Overwrite the hooked return value",
		inputs=[EXEC_IN, _p("value", POINTER)], outputs=[EXEC_OUT]),

	# Output
	_t("log"   , C.OUTPUT, HOST, "Log"   , "Log message to console",
		inputs=[EXEC_IN, _p("message", STRING)], outputs=[EXEC_OUT], params={"message": ""}),
	_t("notify", C.OUTPUT, HOST, "Notify", "Show notification to user",
		inputs=[EXEC_IN, _p("title", STRING), _p("message", STRING)], outputs=[EXEC_OUT], params={"title": "", "message": "", "level": "info"}),

	# Function
	_t("function_define", C.FUNCTION, HOST, "Define Function", "Start of a reusable function body",
		outputs=[EXEC_OUT, _p("args", ANY)], params={"name": ""}),
	_t("function_call"  , C.FUNCTION, HOST, "Call Function"  , "Invoke a defined function",
		inputs=[EXEC_IN, _p("args", ANY)], outputs=[EXEC_OUT, _p("result", ANY)], params={"name": ""}),
	_t("function_return", C.FUNCTION, HOST, "Return"         , "Return a value from a function",
		inputs=[EXEC_IN, _p("value", ANY)]),
	_t("rpc_bridge"     , C.FUNCTION, HOST, "RPC Bridge"     , "Marshal values and control across the host/target boundary",
		inputs=[EXEC_IN, _p("args", ANY)], outputs=[EXEC_OUT, _p("result", ANY)], params={"method": ""}, icon="⇄", bridge=True),
]


def build_default_catalog() -> NodeCatalog:
	return NodeCatalog(BUILTIN_TEMPLATES)

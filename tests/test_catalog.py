# test_catalog

import pytest


from   pydantic           import ValidationError


from   hookgraph.builtin  import BUILTIN_TEMPLATES
from   hookgraph.catalog  import NodeCatalog
from   hookgraph.errors   import ErrorKind, UnknownNodeType
from   hookgraph.schema   import CATEGORY_ORDER, ExecutionContext, NodeCategory, NodeTemplate, PortSpec, PortType


def test_list_preserves_registration_order(catalog):
	assert [t.type for t in catalog.list()] == [t.type for t in BUILTIN_TEMPLATES]
	assert len(catalog) == len(BUILTIN_TEMPLATES)


def test_by_type_returns_template(catalog):
	template = catalog.by_type("memory_read")
	assert template.category == NodeCategory.MEMORY
	assert template.context  == ExecutionContext.TARGET
	assert template.input_port("address").type == PortType.POINTER


def test_unknown_type_raises(catalog):
	with pytest.raises(UnknownNodeType) as info:
		catalog.by_type("no_such_node")
	assert info.value.kind      == ErrorKind.UNKNOWN_NODE_TYPE
	assert info.value.node_type == "no_such_node"
	assert catalog.get("no_such_node") is None
	assert "no_such_node" not in catalog


def test_categories_follow_taxonomy_order(catalog):
	groups = catalog.categories()
	order  = [g.category for g in groups]
	assert order == [c for c in CATEGORY_ORDER if c in order]
	assert all(g.templates for g in groups)
	assert sum(len(g.templates) for g in groups) == len(catalog)
	for group in groups:
		assert all(t.category == group.category for t in group.templates)


def test_every_category_is_populated(catalog):
	assert {g.category for g in catalog.categories()} == set(NodeCategory)


def test_semantic_lookups(catalog):
	assert catalog.is_event("event_ui")
	assert catalog.is_event("event_hook")
	assert not catalog.is_event("log")
	assert catalog.is_bridge("rpc_bridge")
	assert not catalog.is_bridge("call_native")
	assert catalog.is_loop("for_each")
	assert catalog.context_of("event_hook") == ExecutionContext.TARGET
	assert catalog.context_of("log") == ExecutionContext.HOST


def test_types_is_closed_enumeration(catalog):
	types = catalog.types()
	assert isinstance(types, frozenset)
	assert "rpc_bridge" in types
	assert len(types) == len(catalog)


def test_templates_are_immutable(catalog):
	template = catalog.by_type("log")
	with pytest.raises(ValidationError):
		template.label = "Changed"


def test_duplicate_types_rejected():
	template = NodeTemplate(type="x", category=NodeCategory.MATH, context=ExecutionContext.HOST, label="X")
	with pytest.raises(ValueError):
		NodeCatalog([template, template])


def test_loop_back_output_rejected():
	template = NodeTemplate(
		type         = "bad_loop",
		category     = NodeCategory.FLOW,
		context      = ExecutionContext.HOST,
		label        = "Bad",
		output_ports = [PortSpec(name="next", type=PortType.FLOW, loop_back=True)],
	)
	with pytest.raises(ValueError):
		NodeCatalog([template])


def test_event_templates_have_no_inputs(catalog):
	for template in catalog.list():
		if template.category == NodeCategory.EVENTS:
			assert template.input_ports == []


def test_event_with_inputs_rejected():
	template = NodeTemplate(
		type        = "bad_event",
		category    = NodeCategory.EVENTS,
		context     = ExecutionContext.HOST,
		label       = "Bad Event",
		input_ports = [PortSpec(name="x", type=PortType.NUMBER)],
	)
	with pytest.raises(ValueError):
		NodeCatalog(BUILTIN_TEMPLATES + [template])

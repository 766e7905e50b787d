# listing

from   jinja2    import Template
from   typing    import Optional


from   .compiler import ArgSource, CompileResult, Statement, StatementArg
from   .schema   import Script


LISTING_TEMPLATE = """\
# script {{ script_name }} ({{ result.script_id }})
{% for root in result.roots %}

## root {{ root.event_node_id }}
{% if root.error %}
!! {{ root.error.kind.value }}: {{ root.error.message }}
{% else %}
{% for s in root.statements %}
{{ render_statement(s) }}
{% endfor %}
{% endif %}
{% endfor %}
{% for w in result.warnings %}

warning {{ w.kind.value }}: {{ w.node_ids|join(", ") }}
{% endfor %}
"""


def render_arg(arg: StatementArg) -> str:
	if arg.source == ArgSource.LITERAL:
		return f"{arg.port}={arg.value!r}"
	marker = "~" if arg.marshalled else ""
	return f"{arg.port}={marker}{arg.ref_variable}.{arg.ref_port}"


def render_statement(statement: Statement) -> str:
	args = ", ".join(render_arg(arg) for arg in statement.args)
	line = f"{statement.index:3d} [{statement.context.value}] {statement.kind.value} {statement.variable} = {statement.node_type}({args})"
	for port, targets in statement.flow.items():
		if targets:
			line += f" {port}->{','.join(targets)}"
	if statement.loop_back:
		line += f" loop<-{','.join(statement.loop_back)}"
	return line


def render_listing(result: CompileResult, script: Optional[Script] = None) -> str:
	"""Plain-text view of a compile result, stable across runs so it can be diffed"""
	template = Template(LISTING_TEMPLATE, trim_blocks=True, lstrip_blocks=True)
	name     = script.name if script is not None else result.script_id
	return template.render(result=result, script_name=name, render_statement=render_statement)

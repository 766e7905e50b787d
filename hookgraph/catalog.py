# catalog

from   pydantic import BaseModel
from   typing   import Dict, FrozenSet, Iterable, List, Optional


from   .errors  import UnknownNodeType
from   .schema  import CATEGORY_ORDER, ExecutionContext, NodeCategory, NodeTemplate


class CategoryGroup(BaseModel):
	category  : NodeCategory
	templates : List[NodeTemplate]


class NodeCatalog:
	"""
	Read-only registry of node templates.
	The set of type ids is closed once the catalog is built: every lookup
	outside it raises UnknownNodeType.
	"""

	def __init__(self, templates: Iterable[NodeTemplate]):
		self._templates : List[NodeTemplate]      = []
		self._index     : Dict[str, NodeTemplate] = {}

		for template in templates:
			if template.type in self._index:
				raise ValueError(f"Duplicate node type in catalog: {template.type}")
			for port in template.output_ports:
				if port.loop_back:
					raise ValueError(f"Output port '{port.name}' of '{template.type}' cannot be a loop-back port")
			if template.category == NodeCategory.EVENTS and template.input_ports:
				raise ValueError(f"Event template '{template.type}' cannot have input ports")
			self._templates.append(template)
			self._index[template.type] = template

		self._types : FrozenSet[str] = frozenset(self._index)


	def __len__(self) -> int:
		return len(self._templates)


	def __contains__(self, node_type: str) -> bool:
		return node_type in self._types


	def list(self) -> List[NodeTemplate]:
		return list(self._templates)


	def types(self) -> FrozenSet[str]:
		return self._types


	def by_type(self, node_type: str) -> NodeTemplate:
		template = self._index.get(node_type)
		if template is None:
			raise UnknownNodeType(node_type)
		return template


	def get(self, node_type: str) -> Optional[NodeTemplate]:
		return self._index.get(node_type)


	def position_of(self, node_type: str) -> int:
		"""Catalog order, used to break ranking ties"""
		return self._templates.index(self.by_type(node_type))


	def categories(self) -> List[CategoryGroup]:
		groups: Dict[NodeCategory, List[NodeTemplate]] = {}
		for template in self._templates:
			groups.setdefault(template.category, []).append(template)
		return [
			CategoryGroup(category=category, templates=groups[category])
			for category in CATEGORY_ORDER
			if category in groups
		]


	def context_of(self, node_type: str) -> ExecutionContext:
		return self.by_type(node_type).context


	def is_event(self, node_type: str) -> bool:
		return self.by_type(node_type).category == NodeCategory.EVENTS


	def is_bridge(self, node_type: str) -> bool:
		return self.by_type(node_type).bridge


	def is_loop(self, node_type: str) -> bool:
		return self.by_type(node_type).loop

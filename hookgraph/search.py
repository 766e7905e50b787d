# search

from   enum     import Enum
from   typing   import Callable, Dict, Iterable, List, Optional, Tuple


from   .catalog import NodeCatalog
from   .schema  import ExecutionContext, NodeCategory, NodeTemplate


DEFAULT_SEARCH_LIMIT : int = 20
DEFAULT_RECENT_MAX   : int = 8

LABEL_WEIGHT       : float = 1.0
TYPE_WEIGHT        : float = 0.8
DESCRIPTION_WEIGHT : float = 0.5
CATEGORY_WEIGHT    : float = 0.6

# below the weakest weighted prefix hit (description, 80 * 0.5)
SUBSEQUENCE_MAX : float = 39


class CategoryFilter(str, Enum):
	ALL       = "all"
	HOST      = "host"
	TARGET    = "target"
	EVENTS    = "events"
	MEMORY    = "memory"
	FLOW      = "flow"
	VARIABLES = "variables"


CATEGORY_SHORTCUTS : Dict[str, CategoryFilter] = {
	"@h" : CategoryFilter.HOST,
	"@t" : CategoryFilter.TARGET,
	"@e" : CategoryFilter.EVENTS,
	"@m" : CategoryFilter.MEMORY,
	"@f" : CategoryFilter.FLOW,
	"@v" : CategoryFilter.VARIABLES,
}


_FILTER_PREDICATES : Dict[CategoryFilter, Callable[[NodeTemplate], bool]] = {
	CategoryFilter.ALL       : lambda t: True,
	CategoryFilter.HOST      : lambda t: t.context  == ExecutionContext.HOST,
	CategoryFilter.TARGET    : lambda t: t.context  == ExecutionContext.TARGET,
	CategoryFilter.EVENTS    : lambda t: t.category == NodeCategory.EVENTS,
	CategoryFilter.MEMORY    : lambda t: t.category in (NodeCategory.MEMORY, NodeCategory.POINTER),
	CategoryFilter.FLOW      : lambda t: t.category == NodeCategory.FLOW,
	CategoryFilter.VARIABLES : lambda t: t.category == NodeCategory.VARIABLE,
}


def fuzzy_score(query: str, text: str) -> float:
	"""
	Score `text` against `query`:
	100 exact, 80 prefix, 60 substring, otherwise 10 per in-order character
	plus a consecutive-run bonus growing by 5 (reset on a gap), capped at
	SUBSEQUENCE_MAX.
	Returns 0 when the query characters cannot all be found in order.
	"""
	if not query:
		return 0

	q = query.lower()
	t = text.lower()

	if t == q:
		return 100
	if t.startswith(q):
		return 80
	if q in t:
		return 60

	matched = 0
	score   = 0
	bonus   = 0
	for ch in t:
		if matched >= len(q):
			break
		if ch == q[matched]:
			score   += 10 + bonus
			bonus   += 5
			matched += 1
		else:
			bonus = 0

	if matched < len(q):
		return 0
	return min(score, SUBSEQUENCE_MAX)


def parse_query(query: str, category_filter: CategoryFilter = CategoryFilter.ALL) -> Tuple[CategoryFilter, str]:
	"""Strip a leading category shortcut; a shortcut wins over the explicit filter"""
	text = query.strip()
	for shortcut, shortcut_filter in CATEGORY_SHORTCUTS.items():
		if text.startswith(shortcut):
			return shortcut_filter, text[len(shortcut):].strip()
	return CategoryFilter(category_filter), text


def score_template(search: str, template: NodeTemplate) -> float:
	return max(
		fuzzy_score(search, template.label)            * LABEL_WEIGHT,
		fuzzy_score(search, template.type)             * TYPE_WEIGHT,
		fuzzy_score(search, template.description)      * DESCRIPTION_WEIGHT,
		fuzzy_score(search, template.category.value)   * CATEGORY_WEIGHT,
	)


class RecentNodes:
	"""Most-recent-first list of inserted node types, bounded in length"""

	def __init__(self, types: Optional[Iterable[str]] = None, max_size: int = DEFAULT_RECENT_MAX):
		self.max_size : int       = max_size
		self._types   : List[str] = []
		for node_type in types or []:
			if isinstance(node_type, str) and node_type not in self._types:
				self._types.append(node_type)
		self._types = self._types[:max_size]


	def record(self, node_type: str):
		self._types = [t for t in self._types if t != node_type]
		self._types.insert(0, node_type)
		del self._types[self.max_size:]


	def types(self) -> List[str]:
		return list(self._types)


	def clear(self):
		self._types = []


def search(
	catalog         : NodeCatalog,
	query           : str,
	category_filter : CategoryFilter          = CategoryFilter.ALL,
	recent          : Optional[RecentNodes]   = None,
	limit           : int                     = DEFAULT_SEARCH_LIMIT,
) -> List[NodeTemplate]:
	active_filter, text = parse_query(query, category_filter)
	predicate = _FILTER_PREDICATES[active_filter]
	templates = [t for t in catalog.list() if predicate(t)]

	if not text:
		recent_types = recent.types() if recent else []
		by_type      = {t.type: t for t in templates}
		recent_nodes = [by_type[node_type] for node_type in recent_types if node_type in by_type]
		other_nodes  = sorted(
			(t for t in templates if t.type not in recent_types),
			key = lambda t: (t.category.value.lower(), t.label.lower()),
		)
		return (recent_nodes + other_nodes)[:limit]

	scored = [(score_template(text, t), t) for t in templates]
	scored = [item for item in scored if item[0] > 0]
	# sorted() is stable, so equal scores keep catalog order
	scored = sorted(scored, key=lambda item: -item[0])
	return [t for _, t in scored][:limit]


class SearchKey(str, Enum):
	ARROW_DOWN = "ArrowDown"
	ARROW_UP   = "ArrowUp"
	TAB        = "Tab"
	ENTER      = "Enter"
	ESCAPE     = "Escape"


class SearchSession:
	"""Command-surface state: the ranked list and a cursor into it"""

	def __init__(self, catalog: NodeCatalog, recent: Optional[RecentNodes] = None, query: str = "", category_filter: CategoryFilter = CategoryFilter.ALL):
		self.catalog         : NodeCatalog           = catalog
		self.recent          : Optional[RecentNodes] = recent
		self.query           : str                   = query
		self.category_filter : CategoryFilter        = CategoryFilter(category_filter)
		self.cursor          : int                   = 0
		self.results         : List[NodeTemplate]    = []
		self.closed          : bool                  = False
		self.refresh()

	def refresh(self):
		self.results = search(self.catalog, self.query, self.category_filter, self.recent)
		self.cursor  = 0

	def set_query(self, query: str):
		self.query = query
		self.refresh()

	def set_filter(self, category_filter: CategoryFilter):
		self.category_filter = CategoryFilter(category_filter)
		self.refresh()

	def move(self, delta: int):
		if not self.results:
			self.cursor = 0
			return
		self.cursor = min(max(self.cursor + delta, 0), len(self.results) - 1)

	@property
	def current(self) -> Optional[NodeTemplate]:
		if 0 <= self.cursor < len(self.results):
			return self.results[self.cursor]
		return None

	def commit(self) -> Optional[NodeTemplate]:
		template = self.current
		if template is None:
			return None
		if self.recent is not None:
			self.recent.record(template.type)
		self.closed = True
		return template

	def close(self):
		self.closed = True

	def handle_key(self, key: str, shift: bool = False) -> Optional[NodeTemplate]:
		"""Apply a key press; returns the committed template on Enter"""
		key = SearchKey(key)
		if key == SearchKey.ARROW_DOWN:
			self.move(1)
		elif key == SearchKey.ARROW_UP:
			self.move(-1)
		elif key == SearchKey.TAB:
			self.move(-1 if shift else 1)
		elif key == SearchKey.ENTER:
			return self.commit()
		elif key == SearchKey.ESCAPE:
			self.close()
		return None

"""
=============================================================================
ROUTE
=============================================================================

One registered route: the methods it answers, its URI pattern, the action
to run, its middleware and an optional name.

    router.get("/blogs/{id}", "Api.BlogController@show").name("blogs.show")

=============================================================================
PATTERN SYNTAX
=============================================================================

    /blogs              static, exact match
    /blogs/{id}         one segment          (?P<id>[^/]+)
    /blogs/{id:\\d+}     one segment, custom  (?P<id>\\d+)
    /archive/{year?}    optional segment     (?:/(?P<year>[^/]+))?
    /files/*            registered twice by the router:
                            /files
                            /files/{wildcard:.+}

=============================================================================
"""

from typing import Any, Callable, Dict, List, Optional, Pattern, Union
import re


Action = Union[str, Callable[..., Any]]

# {name}, {name?} or {name:regex}; the regex may hold one level of braces
PARAM_PATTERN = re.compile(r"\{(\w+)(\?)?(?::((?:[^{}]|\{[^{}]*\})+))?\}")


def compile_pattern(uri: str) -> Pattern:
    """Turn a route URI into an anchored regex with one named group per parameter."""
    parts = ["^"]
    position = 0

    for match in PARAM_PATTERN.finditer(uri):
        static = uri[position:match.start()]
        name, optional, regex = match.group(1), match.group(2), match.group(3)
        segment = f"(?P<{name}>{regex or '[^/]+'})"

        if optional and static.endswith("/"):
            # the slash goes optional with the segment: /archive and /archive/2024
            parts.append(re.escape(static[:-1]))
            parts.append(f"(?:/{segment})?")
        elif optional:
            parts.append(re.escape(static))
            parts.append(f"(?:{segment})?")
        else:
            parts.append(re.escape(static))
            parts.append(segment)

        position = match.end()

    parts.append(re.escape(uri[position:]))
    parts.append("$")
    return re.compile("".join(parts))


def parameter_names(uri: str) -> List[str]:
    return [match.group(1) for match in PARAM_PATTERN.finditer(uri)]


def is_static(uri: str) -> bool:
    return PARAM_PATTERN.search(uri) is None


class Route:
    """
    A route definition.

    `middleware` and `name` are fluent:

        router.post("/login", "AdminController@login") \\
            .middleware("throttle:5,60") \\
            .name("admin.login")
    """

    def __init__(self, methods: List[str], uri: str, action: Action, router=None):
        self.methods = [method.upper() for method in methods]
        self.uri = uri
        self.action = action
        self.route_name: Optional[str] = None
        self.middleware_list: List[Any] = []
        # dotted group name prefix captured at registration, e.g. "admin.posts"
        self.name_prefix = ""
        self._router = router

    def name(self, name: str) -> "Route":
        full_name = f"{self.name_prefix}.{name}" if self.name_prefix else name
        previous, self.route_name = self.route_name, full_name
        if self._router is not None:
            self._router.register_name(full_name, self, previous)
        return self

    def get_name(self) -> Optional[str]:
        return self.route_name

    def has_name(self) -> bool:
        return self.route_name is not None

    def middleware(self, *middleware: Union[str, List[Any], Any]) -> "Route":
        """Append middleware; accepts aliases, lists of aliases or Middleware objects."""
        for item in middleware:
            if isinstance(item, (list, tuple)):
                self.middleware_list.extend(item)
            else:
                self.middleware_list.append(item)
        return self

    def get_middleware(self) -> List[Any]:
        return list(self.middleware_list)

    def is_callable(self) -> bool:
        return callable(self.action)

    def build_uri(self, params: Optional[Dict[str, Any]] = None) -> str:
        """
        Fill the URI pattern with `params`.

        Unfilled optional segments are dropped and repeated slashes collapsed:

            /archive/{year?}   {}              → /archive
            /blogs/{id}        {"id": 7}       → /blogs/7
        """
        params = params or {}

        def substitute(match: re.Match) -> str:
            name, optional = match.group(1), match.group(2)
            if name in params and params[name] is not None:
                return str(params[name])
            return "" if optional else match.group(0)

        uri = PARAM_PATTERN.sub(substitute, self.uri)
        if uri.endswith("/*"):
            uri = uri[:-2]
        uri = re.sub(r"/+", "/", uri)
        if len(uri) > 1:
            uri = uri.rstrip("/")
        return uri or "/"

    def __repr__(self) -> str:
        action = self.action if isinstance(self.action, str) else getattr(self.action, "__name__", "<callable>")
        return f"<Route {'|'.join(self.methods)} {self.uri} → {action}>"

"""
Page result objects and pagination link generation.

`QueryBuilder.paginate()` returns a LengthAwarePage (it knows the total,
so it can render numbered links); `simple_paginate()` returns a SimplePage
(it only knows whether another page exists).

Link window for page 9 of 20 (window=3):

    « Previous  1  ...  6  7  8  [9]  10  11  12  ...  20  Next »
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlencode


LINK_WINDOW = 3
PREVIOUS_LABEL = "&laquo; Previous"
NEXT_LABEL = "Next &raquo;"


def _serialize(item: Any) -> Any:
    if hasattr(item, "to_dict"):
        return item.to_dict()
    return item


def page_url(path: str, query: Mapping[str, Any], page_name: str, page: int) -> str:
    """Build the URL for `page`, keeping the rest of the query string."""
    params = dict(query)
    params[page_name] = page
    query_string = urlencode(params, doseq=True)
    return f"{path}?{query_string}" if query_string else path


def build_links(
    current_page: int,
    last_page: int,
    path: str,
    query: Mapping[str, Any],
    page_name: str = "page",
    window: int = LINK_WINDOW,
) -> List[Dict[str, Any]]:
    """
    Render the link list for a length-aware page.

    Each link is {"url", "label", "active"}; ellipsis markers have url None.
    """
    def link(page: int, label: Optional[str] = None, active: bool = False) -> Dict[str, Any]:
        return {
            "url": page_url(path, query, page_name, page),
            "label": label or str(page),
            "active": active,
        }

    gap = {"url": None, "label": "...", "active": False}
    links: List[Dict[str, Any]] = []

    if current_page > 1:
        links.append(link(current_page - 1, PREVIOUS_LABEL))

    if current_page > window + 1:
        links.append(link(1))
        if current_page > window + 2:
            links.append(dict(gap))

    start = max(1, current_page - window)
    end = min(last_page, current_page + window)
    for page in range(start, end + 1):
        links.append(link(page, active=page == current_page))

    if current_page < last_page - window:
        if current_page < last_page - window - 1:
            links.append(dict(gap))
        links.append(link(last_page))

    if current_page < last_page:
        links.append(link(current_page + 1, NEXT_LABEL))

    return links


@dataclass
class SimplePage:
    """One page of results without a total count."""

    data: List[Any]
    current_page: int
    per_page: int
    from_: int
    to: int
    has_more_pages: bool
    prev_page: Optional[int]
    next_page: Optional[int]
    path: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": [_serialize(item) for item in self.data],
            "current_page": self.current_page,
            "per_page": self.per_page,
            "from": self.from_,
            "to": self.to,
            "has_more_pages": self.has_more_pages,
            "prev_page": self.prev_page,
            "next_page": self.next_page,
            "path": self.path,
        }


@dataclass
class LengthAwarePage:
    """One page of results plus the total, last page and rendered links."""

    data: List[Any]
    current_page: int
    per_page: int
    total: int
    last_page: int
    from_: int
    to: int
    has_more_pages: bool
    prev_page: Optional[int]
    next_page: Optional[int]
    path: str = ""
    links: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": [_serialize(item) for item in self.data],
            "current_page": self.current_page,
            "per_page": self.per_page,
            "total": self.total,
            "last_page": self.last_page,
            "from": self.from_,
            "to": self.to,
            "has_more_pages": self.has_more_pages,
            "prev_page": self.prev_page,
            "next_page": self.next_page,
            "path": self.path,
            "links": self.links,
        }

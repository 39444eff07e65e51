import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from core import BoardEntry, Disposition, ReleaseLine

from .graphql_client import GraphQLClient, GraphQLClientError
from .pagination import DEFAULT_PAGE_SIZE, Page, collect_nodes

logger = logging.getLogger("port_tracker.board")

OWNER_FIELD_NAME = "Suggested Assignee"
STATUS_FIELD_NAME = "Status"
RELEASE_FIELD_NAME = "Release"


@dataclass(frozen=True)
class BoardTarget:
    """Fixed coordinates of the porting board and its fields."""

    org: str
    project_number: int
    project_id: str
    owner_field_id: str
    status_field_id: str
    release_field_id: str


_ITEMS_QUERY = (
    "query($org:String!,$projectNumber:Int!,$first:Int!,$cursor:String){\n"
    "  organization(login:$org){\n"
    "    projectV2(number:$projectNumber){\n"
    "      items(first:$first,after:$cursor){\n"
    "        nodes{\n"
    "          id\n"
    "          content{ ... on PullRequest { url } }\n"
    f'          owner: fieldValueByName(name:"{OWNER_FIELD_NAME}"){{ ... on ProjectV2ItemFieldTextValue {{ text }} }}\n'
    f'          status: fieldValueByName(name:"{STATUS_FIELD_NAME}"){{ ... on ProjectV2ItemFieldSingleSelectValue {{ id name }} }}\n'
    f'          release: fieldValueByName(name:"{RELEASE_FIELD_NAME}"){{ ... on ProjectV2ItemFieldSingleSelectValue {{ id name }} }}\n'
    "        }\n"
    "        pageInfo{ endCursor hasNextPage }\n"
    "      }\n"
    "    }\n"
    "  }\n"
    "}"
)

_ADD_ITEM_MUTATION = (
    "mutation($projectId:ID!,$contentId:ID!){"
    "  addProjectV2ItemById(input:{projectId:$projectId,contentId:$contentId}){ item{ id } }"
    "}"
)

_SET_FIELD_MUTATION = (
    "mutation($projectId:ID!,$itemId:ID!,$fieldId:ID!,$value:ProjectV2FieldValue!){"
    "  updateProjectV2ItemFieldValue(input:{projectId:$projectId,itemId:$itemId,fieldId:$fieldId,value:$value}){"
    "    projectV2Item{ id }"
    "  }"
    "}"
)


class GitHubBoard:
    """Reads and writes cards of one GitHub Projects (v2) board."""

    def __init__(self, client: GraphQLClient, target: BoardTarget, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        self.client = client
        self.target = target
        self.page_size = page_size

    def fetch_entries(self) -> List[BoardEntry]:
        nodes = collect_nodes(self._items_page)
        entries = []
        for node in nodes:
            entry = BoardEntry.from_node(node)
            if entry is None:
                logger.warning("Board item without id skipped")
                continue
            entries.append(entry)
        logger.info("Loaded %s board entries", len(entries))
        return entries

    def _items_page(self, cursor: Optional[str]) -> Page:
        data = self.client.execute(
            _ITEMS_QUERY,
            {
                "org": self.target.org,
                "projectNumber": self.target.project_number,
                "first": self.page_size,
                "cursor": cursor,
            },
        )
        project = ((data.get("organization") or {}).get("projectV2")) or {}
        return Page.from_connection(project.get("items"))

    def add_item(self, content_id: str) -> str:
        data = self.client.execute(
            _ADD_ITEM_MUTATION, {"projectId": self.target.project_id, "contentId": content_id}
        )
        item = ((data.get("addProjectV2ItemById") or {}).get("item")) or {}
        item_id = item.get("id")
        if not item_id:
            raise GraphQLClientError("addProjectV2ItemById returned no item id")
        return str(item_id)

    def set_owner(self, item_id: str, owner: Optional[str]) -> None:
        self._set_field(item_id, self.target.owner_field_id, {"text": owner or ""})

    def set_disposition(self, item_id: str, disposition: Disposition) -> None:
        self._set_field(item_id, self.target.status_field_id, {"singleSelectOptionId": disposition.option_id})

    def set_release(self, item_id: str, release: ReleaseLine) -> None:
        self._set_field(item_id, self.target.release_field_id, {"singleSelectOptionId": release.option_id})

    def _set_field(self, item_id: str, field_id: str, value: Dict[str, Any]) -> None:
        self.client.execute(
            _SET_FIELD_MUTATION,
            {"projectId": self.target.project_id, "itemId": item_id, "fieldId": field_id, "value": value},
        )

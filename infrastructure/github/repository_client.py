import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from application.ports import ChangeDetails, FiledItem
from core import AncestryStatus, change_number

from .graphql_client import GraphQLClient, GraphQLClientError
from .pagination import DEFAULT_PAGE_SIZE, Page

logger = logging.getLogger("port_tracker.github")

# compare(base: tag, head: commit) status -> where the commit sits relative to the tag
_COMPARE_STATUS = {
    "BEHIND": AncestryStatus.ANCESTOR_OR_EQUAL,
    "IDENTICAL": AncestryStatus.ANCESTOR_OR_EQUAL,
    "AHEAD": AncestryStatus.DESCENDANT,
    "DIVERGED": AncestryStatus.DIVERGED,
}


@dataclass(frozen=True)
class SourceRepository:
    owner: str
    name: str
    main_branch: str = "main"


@dataclass(frozen=True)
class FollowUpTarget:
    """Repository that receives follow-up issues."""

    slug: str
    repository_id: str
    label: str
    label_id: str


_MERGED_CHANGES_QUERY = """
query($owner:String!,$repo:String!,$first:Int!,$cursor:String){
  repository(owner:$owner,name:$repo){
    pullRequests(states:MERGED,first:$first,orderBy:{field:UPDATED_AT,direction:DESC},after:$cursor){
      nodes{
        id title url mergedAt updatedAt baseRefName
        mergeCommit{ oid }
        author{ login }
        assignees(first:10){ nodes{ login } }
        reviews(first:10){ nodes{ state author{ login } } }
      }
      pageInfo{ endCursor hasNextPage }
    }
  }
}
"""

_FILES_QUERY = """
query($owner:String!,$repo:String!,$number:Int!,$first:Int!,$cursor:String){
  repository(owner:$owner,name:$repo){
    pullRequest(number:$number){
      files(first:$first,after:$cursor){
        nodes{ path }
        pageInfo{ endCursor hasNextPage }
      }
    }
  }
}
"""

_COMPARE_QUERY = """
query($owner:String!,$repo:String!,$ref:String!,$commit:String!){
  repository(owner:$owner,name:$repo){
    ref(qualifiedName:$ref){
      compare(headRef:$commit){ status }
    }
  }
}
"""

_DETAILS_QUERY = """
query($owner:String!,$repo:String!,$number:Int!){
  repository(owner:$owner,name:$repo){
    pullRequest(number:$number){
      number title
      mergeCommit{ oid }
    }
  }
}
"""

_SEARCH_QUERY = """
query($query:String!,$first:Int!){
  search(type:ISSUE,query:$query,first:$first){
    nodes{ ... on Issue { url } }
  }
}
"""

_USER_QUERY = """
query($login:String!){
  user(login:$login){ id }
}
"""

_CREATE_ISSUE_MUTATION = """
mutation($repositoryId:ID!,$title:String!,$body:String!,$assigneeIds:[ID!],$labelIds:[ID!]){
  createIssue(input:{repositoryId:$repositoryId,title:$title,body:$body,assigneeIds:$assigneeIds,labelIds:$labelIds}){
    issue{ number url }
  }
}
"""


class RepositoryClient:
    """Source-repository reads plus follow-up issue filing over GraphQL."""

    def __init__(
        self,
        client: GraphQLClient,
        source: SourceRepository,
        followups: Optional[FollowUpTarget] = None,
        known_user_ids: Optional[Dict[str, str]] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self.client = client
        self.source = source
        self.followups = followups
        self.page_size = page_size
        self._user_ids: Dict[str, str] = {k.lower(): v for k, v in (known_user_ids or {}).items()}

    # ------------------------------------------------------------------
    # Change source
    # ------------------------------------------------------------------

    def fetch_changes_page(self, cursor: Optional[str]) -> Page:
        data = self.client.execute(
            _MERGED_CHANGES_QUERY,
            {"owner": self.source.owner, "repo": self.source.name, "first": self.page_size, "cursor": cursor},
        )
        repo = data.get("repository") or {}
        return Page.from_connection(repo.get("pullRequests"))

    def fetch_files_page(self, number: int, cursor: Optional[str]) -> Page:
        data = self.client.execute(
            _FILES_QUERY,
            {
                "owner": self.source.owner,
                "repo": self.source.name,
                "number": number,
                "first": self.page_size,
                "cursor": cursor,
            },
        )
        pull = ((data.get("repository") or {}).get("pullRequest")) or {}
        return Page.from_connection(pull.get("files"))

    # ------------------------------------------------------------------
    # Ancestry
    # ------------------------------------------------------------------

    def compare(self, tag: str, commit: str) -> AncestryStatus:
        try:
            data = self.client.execute(
                _COMPARE_QUERY,
                {
                    "owner": self.source.owner,
                    "repo": self.source.name,
                    "ref": f"refs/tags/{tag}",
                    "commit": commit,
                },
            )
        except GraphQLClientError as exc:
            logger.warning("Could not compare %s with %s: %s", commit, tag, exc)
            return AncestryStatus.UNKNOWN
        ref = (data.get("repository") or {}).get("ref")
        if not ref:
            logger.warning("Release tag %s not found", tag)
            return AncestryStatus.UNKNOWN
        status = ((ref.get("compare") or {}).get("status")) or ""
        return _COMPARE_STATUS.get(str(status).upper(), AncestryStatus.UNKNOWN)

    # ------------------------------------------------------------------
    # Follow-up issues
    # ------------------------------------------------------------------

    def change_details(self, url: str) -> Optional[ChangeDetails]:
        number = change_number(url)
        if number is None:
            return None
        try:
            data = self.client.execute(
                _DETAILS_QUERY, {"owner": self.source.owner, "repo": self.source.name, "number": number}
            )
        except GraphQLClientError as exc:
            logger.warning("Error fetching PR details for %s: %s", url, exc)
            return None
        pull = ((data.get("repository") or {}).get("pullRequest")) or {}
        if not pull:
            return None
        merge_commit = pull.get("mergeCommit") or {}
        return ChangeDetails(
            number=int(pull.get("number") or number),
            title=str(pull.get("title") or ""),
            merge_commit=merge_commit.get("oid") or None,
        )

    def search_followups(self, term: str) -> List[str]:
        target = self._followup_target()
        query = f'repo:{target.slug} is:issue label:"{target.label}" {term} in:title'
        data = self.client.execute(_SEARCH_QUERY, {"query": query, "first": 100})
        nodes = ((data.get("search") or {}).get("nodes")) or []
        return [str(n["url"]) for n in nodes if isinstance(n, dict) and n.get("url")]

    def create_followup(self, title: str, body: str, owners: Sequence[str]) -> Optional[FiledItem]:
        target = self._followup_target()
        assignee_ids = []
        for login in owners:
            user_id = self.user_id(login)
            if user_id:
                assignee_ids.append(user_id)
        data = self.client.execute(
            _CREATE_ISSUE_MUTATION,
            {
                "repositoryId": target.repository_id,
                "title": title,
                "body": body,
                "assigneeIds": assignee_ids,
                "labelIds": [target.label_id],
            },
        )
        issue = ((data.get("createIssue") or {}).get("issue")) or {}
        if not issue.get("url"):
            return None
        return FiledItem(number=int(issue.get("number") or 0), url=str(issue["url"]))

    def user_id(self, login: str) -> Optional[str]:
        key = (login or "").strip().lower()
        if not key:
            return None
        if key in self._user_ids:
            return self._user_ids[key]
        try:
            data = self.client.execute(_USER_QUERY, {"login": login})
        except GraphQLClientError as exc:
            logger.warning("Could not find user ID for %s: %s", login, exc)
            return None
        user_id = (data.get("user") or {}).get("id")
        if not user_id:
            logger.warning("Could not find user ID for %s", login)
            return None
        self._user_ids[key] = str(user_id)
        return self._user_ids[key]

    def _followup_target(self) -> FollowUpTarget:
        if self.followups is None:
            raise GraphQLClientError("follow-up repository not configured")
        return self.followups

from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict

ReviewAction = Literal[
    "list_prs",
    "get_pr",
    "get_diff",
    "get_comments",
    "post_comment",
    "reply_comment",
    "resolve_thread",
]

PullRequestStatus = Literal["active", "completed", "abandoned"]


class AzureModel(BaseModel):
    # Azure DevOps adds fields over time; keep anything we don't declare.
    model_config = ConfigDict(extra="allow")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True)


class RepositoryCoordinates(BaseModel):
    model_config = ConfigDict(frozen=True)

    organization: str
    project: str
    repository: str


class IdentityRef(AzureModel):
    id: Optional[str] = None
    displayName: Optional[str] = None
    uniqueName: Optional[str] = None  # usually email


class PullRequest(AzureModel):
    pullRequestId: int
    title: str
    status: str
    createdBy: IdentityRef
    url: str
    description: Optional[str] = None
    creationDate: Optional[str] = None
    reviewers: List[IdentityRef] = []
    sourceRefName: Optional[str] = None
    targetRefName: Optional[str] = None
    supportsIterations: Optional[bool] = None


class CommentPosition(BaseModel):
    line: int
    offset: int


class ThreadContext(AzureModel):
    # Anchors an inline comment to a file region
    filePath: Optional[str] = None
    leftFileStart: Optional[CommentPosition] = None
    leftFileEnd: Optional[CommentPosition] = None
    rightFileStart: Optional[CommentPosition] = None
    rightFileEnd: Optional[CommentPosition] = None


class Comment(AzureModel):
    id: int
    content: Optional[str] = None
    commentType: Optional[str] = None
    author: Optional[IdentityRef] = None
    parentCommentId: Optional[int] = None
    publishedDate: Optional[str] = None
    lastUpdatedDate: Optional[str] = None
    isDeleted: Optional[bool] = None


class Thread(AzureModel):
    id: int
    status: Optional[str] = None  # system threads have no status
    threadContext: Optional[ThreadContext] = None
    comments: List[Comment] = []
    publishedDate: Optional[str] = None
    lastUpdatedDate: Optional[str] = None
    isDeleted: Optional[bool] = None
    properties: Optional[Dict[str, Any]] = None


class Iteration(AzureModel):
    id: int
    createdDate: Optional[str] = None
    author: Optional[IdentityRef] = None


class Change(AzureModel):
    # This models a file change in a PR iteration
    changeType: str  # edit, add, delete, rename, etc.
    item: Optional[dict] = None  # contains path, objectId, etc.
    originalPath: Optional[str] = None
    changeTrackingId: Optional[int] = None
    changeId: Optional[int] = None


class ReviewRequest(BaseModel):
    action: ReviewAction
    pullRequestId: Optional[int] = None
    threadId: Optional[int] = None
    content: Optional[str] = None
    status: Optional[str] = None
    threadContext: Optional[ThreadContext] = None

import logging
import os
import sys
from dotenv import load_dotenv
from mcp.server.fastmcp import FastMCP
from typing import Any, Optional
from azure_arbiter import AzureReviewArbiter
from models import ReviewAction, ThreadContext

# Load environment variables
load_dotenv()

LOG_LEVEL = os.getenv("ADO_LOG_LEVEL", "WARNING")

# Create an MCP server
mcp = FastMCP("azure-devops-reviewer")

arbiter = AzureReviewArbiter()

@mcp.tool()
def azure_devops_reviewer(
    action: ReviewAction,
    pullRequestId: Optional[int] = None,
    threadId: Optional[int] = None,
    content: Optional[str] = None,
    status: Optional[str] = None,
    threadContext: Optional[ThreadContext] = None,
) -> Any:
    """
    Interact with Azure DevOps pull requests for the current repository.
    The organization, project and repository are taken from the git remote "origin".

    Actions:
    - 'list_prs': List pull requests. 'status' filters by 'active' (default), 'completed' or 'abandoned'.
    - 'get_pr': Get details of a pull request. Requires pullRequestId.
    - 'get_diff': Get the file changes of the latest iteration. Requires pullRequestId.
    - 'get_comments': Get all comment threads. Requires pullRequestId.
    - 'post_comment': Start a new comment thread. Requires pullRequestId and content.
      Pass threadContext (filePath plus rightFileStart/rightFileEnd with line and offset)
      to anchor the comment to lines of a file; omit it for a PR-level comment.
    - 'reply_comment': Reply to a thread. Requires pullRequestId, threadId and content.
    - 'resolve_thread': Set a thread's status. Requires pullRequestId and threadId.
      'status' defaults to 'closed'; Azure DevOps also accepts 'active', 'fixed', 'wontFix', 'byDesign' and 'pending'.

    Args:
        action (str): The action to perform.
        pullRequestId (int, optional): The ID of the pull request.
        threadId (int, optional): The ID of the comment thread.
        content (str, optional): Comment text for post_comment and reply_comment.
        status (str, optional): Pull request filter for list_prs, or new thread status for resolve_thread.
        threadContext (dict, optional): File position for a new inline comment thread.

    Returns:
        The Azure DevOps response for the action (a dict, a list of dicts, or null when the server returns no content).
    """
    return arbiter.dispatch({
        "action": action,
        "pullRequestId": pullRequestId,
        "threadId": threadId,
        "content": content,
        "status": status,
        "threadContext": threadContext,
    })

def main():
    # stdout is reserved for the MCP stdio transport
    logging.basicConfig(
        level=LOG_LEVEL.upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    mcp.run()

if __name__ == "__main__":
    main()

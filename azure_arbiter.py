import logging
from typing import Any, Callable, Dict, List, Mapping, Union

from client import PULL_REQUEST_STATUSES, AzureDevOpsReviewClient, get_review_client
from models import AzureModel, ReviewRequest

logger = logging.getLogger(__name__)

DEFAULT_RESOLVE_STATUS = "closed"


class MissingParameterError(ValueError):
    """アクションに必要なパラメータが指定されていない"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Missing required parameter: {name}")


class UnsupportedActionError(ValueError):
    pass


def require_param(value: Any, name: str) -> Any:
    """パラメータの存在チェック（None と空文字列は未指定として扱う）"""
    if value is None or (isinstance(value, str) and not value):
        raise MissingParameterError(name)
    return value


def _to_result(result: Union[AzureModel, List[AzureModel], None]) -> Union[Dict, List[Dict], None]:
    if result is None:
        return None
    if isinstance(result, list):
        return [item.to_dict() for item in result]
    return result.to_dict()


"""
ツール呼び出しのアクションを AzureDevOpsReviewClient の各メソッドへ振り分ける。
"""
class AzureReviewArbiter:

    def __init__(self, client_provider: Callable[[], AzureDevOpsReviewClient] = get_review_client):
        """
        Args:
            client_provider: クライアントを返す関数（省略時はプロセス共有のクライアント）
        """
        self.client_provider = client_provider
        self._handlers = {
            "list_prs": self._list_prs,
            "get_pr": self._get_pr,
            "get_diff": self._get_diff,
            "get_comments": self._get_comments,
            "post_comment": self._post_comment,
            "reply_comment": self._reply_comment,
            "resolve_thread": self._resolve_thread,
        }

    def dispatch(self, request: Union[ReviewRequest, Mapping[str, Any]]) -> Any:
        """アクションを実行し、JSONとして返せる結果を返す

        Args:
            request: ReviewRequest、または同じキーを持つ辞書

        Returns:
            クライアントの応答を辞書（またはそのリスト）に変換したもの。
            サーバーが内容を返さなかった場合は None

        Raises:
            UnsupportedActionError: 未知のアクション
            MissingParameterError: 必須パラメータの不足（ネットワークアクセス前に送出）
        """
        if not isinstance(request, ReviewRequest):
            action = request.get("action")
            if action not in self._handlers:
                raise UnsupportedActionError(f"Unsupported action: {action}")
            request = ReviewRequest.model_validate(request)

        handler = self._handlers.get(request.action)
        if handler is None:
            raise UnsupportedActionError(f"Unsupported action: {request.action}")

        logger.debug("Dispatching %s (pullRequestId=%s)", request.action, request.pullRequestId)
        return _to_result(handler(request))

    def _list_prs(self, request: ReviewRequest):
        status = request.status or "active"
        if status not in PULL_REQUEST_STATUSES:
            raise ValueError(f"Invalid pull request status: {status}")
        return self.client_provider().list_pull_requests(status)

    def _get_pr(self, request: ReviewRequest):
        pr_id = require_param(request.pullRequestId, "pullRequestId")
        return self.client_provider().get_pull_request(pr_id)

    def _get_diff(self, request: ReviewRequest):
        pr_id = require_param(request.pullRequestId, "pullRequestId")
        return self.client_provider().get_pull_request_diff(pr_id)

    def _get_comments(self, request: ReviewRequest):
        pr_id = require_param(request.pullRequestId, "pullRequestId")
        return self.client_provider().get_pull_request_threads(pr_id)

    def _post_comment(self, request: ReviewRequest):
        pr_id = require_param(request.pullRequestId, "pullRequestId")
        content = require_param(request.content, "content")
        return self.client_provider().post_comment(pr_id, content, request.threadContext)

    def _reply_comment(self, request: ReviewRequest):
        pr_id = require_param(request.pullRequestId, "pullRequestId")
        thread_id = require_param(request.threadId, "threadId")
        content = require_param(request.content, "content")
        return self.client_provider().reply_to_thread(pr_id, thread_id, content)

    def _resolve_thread(self, request: ReviewRequest):
        pr_id = require_param(request.pullRequestId, "pullRequestId")
        thread_id = require_param(request.threadId, "threadId")
        status = request.status or DEFAULT_RESOLVE_STATUS
        return self.client_provider().update_thread_status(pr_id, thread_id, status)

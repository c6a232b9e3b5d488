import pytest
import json
import os
import sys
from unittest.mock import MagicMock

import requests

# Add project root to sys.path so we can import client
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import client as client_module
from client import AzureDevOpsReviewClient
from azure_arbiter import AzureReviewArbiter
from models import RepositoryCoordinates

REPOSITORY_ID = "3411ebc1-d5aa-464f-9615-0b527bc66719"
BASE_URL = "https://dev.azure.com/contoso/Fabrikam%20Fiber/_apis/git/"


def make_response(status_code=200, payload=None, reason="OK", text=None):
    """requests.Response を組み立てる（スタブ送信用）"""
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason
    if text is not None:
        response._content = text.encode("utf-8")
    elif payload is not None:
        response._content = json.dumps(payload).encode("utf-8")
    else:
        response._content = b""
    response.encoding = "utf-8"
    return response


def repository_response():
    return make_response(200, {"id": REPOSITORY_ID, "name": "FabrikamRepo"})


@pytest.fixture(autouse=True)
def reset_singleton():
    client_module.reset_review_client()
    yield
    client_module.reset_review_client()


@pytest.fixture
def coordinates():
    return RepositoryCoordinates(organization="contoso", project="Fabrikam Fiber", repository="FabrikamRepo")


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(coordinates, session):
    return AzureDevOpsReviewClient(coordinates, "test-pat", session=session)


@pytest.fixture
def resolved_client(client):
    # リポジトリID解決済みの状態にしておく
    client.repository_id = REPOSITORY_ID
    return client


@pytest.fixture
def arbiter(resolved_client):
    return AzureReviewArbiter(lambda: resolved_client)

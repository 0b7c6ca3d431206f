"""
Tests for the GitHub client.

A local aiohttp app stands in for the REST API: it verifies the app JWT,
hands out an installation token and keeps issues and file contents in
memory, enforcing the contents API's sha rules.
"""

import base64
import json

import aiohttp
import jwt
import pytest
import pytest_asyncio
from aiohttp import test_utils, web
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from httpmonitor.errors import GitHubError
from httpmonitor.github import GitHubClient, build_app_jwt
from httpmonitor.models import MonitorConfig

INSTALLATION_TOKEN = "ghs_installation_token"


@pytest.fixture(scope="module")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="module")
def private_pem(rsa_key):
    return rsa_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture
def config(private_pem):
    return MonitorConfig(
        check_url="https://api.example.com/health",
        issue_label="outage",
        service_name="Example API",
        repository="example/status",
        app_id=4242,
        private_key=private_pem,
        installation_id=99,
    )


class FakeGitHub:
    """Just enough of the REST API for the client."""

    def __init__(self, public_key) -> None:
        self.public_key = public_key
        self.issues = {}
        self.files = {}
        self.requests = []
        self._revision = 0

    def app(self) -> web.Application:
        app = web.Application(middlewares=[self._record])
        app.router.add_get("/app", self.get_app)
        app.router.add_post("/app/installations/{id}/access_tokens", self.create_token)
        app.router.add_get("/repos/{owner}/{repo}/issues", self.list_issues)
        app.router.add_post("/repos/{owner}/{repo}/issues", self.create_issue)
        app.router.add_patch("/repos/{owner}/{repo}/issues/{number}", self.update_issue)
        app.router.add_get("/repos/{owner}/{repo}/contents/{path:.+}", self.get_contents)
        app.router.add_put("/repos/{owner}/{repo}/contents/{path:.+}", self.put_contents)
        return app

    @web.middleware
    async def _record(self, request, handler):
        self.requests.append((request.method, request.path, dict(request.query)))
        return await handler(request)

    def _bearer(self, request) -> str:
        return request.headers.get("Authorization", "").replace("Bearer ", "", 1)

    def _require_jwt(self, request) -> dict:
        try:
            return jwt.decode(self._bearer(request), self.public_key, algorithms=["RS256"])
        except jwt.PyJWTError:
            raise web.HTTPUnauthorized(text=json.dumps({"message": "A JSON web token could not be decoded"}))

    def _require_token(self, request) -> None:
        if self._bearer(request) != INSTALLATION_TOKEN:
            raise web.HTTPUnauthorized(text=json.dumps({"message": "Bad credentials"}))

    def _sha(self) -> str:
        self._revision += 1
        return f"blob{self._revision}"

    async def get_app(self, request):
        claims = self._require_jwt(request)
        return web.json_response({"id": int(claims["iss"]), "slug": "http-monitor-bot"})

    async def create_token(self, request):
        self._require_jwt(request)
        if request.match_info["id"] != "99":
            raise web.HTTPNotFound(text=json.dumps({"message": "Not Found"}))
        return web.json_response({"token": INSTALLATION_TOKEN}, status=201)

    async def list_issues(self, request):
        self._require_token(request)
        label = request.query.get("labels")
        state = request.query.get("state")
        return web.json_response(
            [i for i in self.issues.values() if i["state"] == state and label in i["labels"]]
        )

    async def create_issue(self, request):
        self._require_token(request)
        data = await request.json()
        number = len(self.issues) + 1
        self.issues[number] = {
            "number": number,
            "title": data["title"],
            "body": data["body"],
            "labels": data["labels"],
            "state": "open",
        }
        return web.json_response(self.issues[number], status=201)

    async def update_issue(self, request):
        self._require_token(request)
        data = await request.json()
        issue = self.issues[int(request.match_info["number"])]
        issue.update(data)
        return web.json_response(issue)

    async def get_contents(self, request):
        self._require_token(request)
        path = request.match_info["path"]
        if path not in self.files:
            raise web.HTTPNotFound(text=json.dumps({"message": "Not Found"}))
        text, sha = self.files[path]
        encoded = base64.b64encode(text.encode()).decode()
        # GitHub wraps the payload every 60 characters
        wrapped = "\n".join(encoded[i:i + 60] for i in range(0, len(encoded), 60))
        return web.json_response({"type": "file", "path": path, "sha": sha, "content": wrapped, "encoding": "base64"})

    async def put_contents(self, request):
        self._require_token(request)
        path = request.match_info["path"]
        data = await request.json()
        text = base64.b64decode(data["content"]).decode()
        if path in self.files:
            if data.get("sha") != self.files[path][1]:
                raise web.HTTPConflict(text=json.dumps({"message": f"{path} does not match {data.get('sha')}"}))
            status = 200
        elif "sha" in data:
            raise web.HTTPUnprocessableEntity(text=json.dumps({"message": "sha does not exist"}))
        else:
            status = 201
        sha = self._sha()
        self.files[path] = (text, sha)
        return web.json_response({"content": {"path": path, "sha": sha}}, status=status)


@pytest_asyncio.fixture
async def github(rsa_key):
    fake = FakeGitHub(rsa_key.public_key())
    server = test_utils.TestServer(fake.app())
    await server.start_server()
    try:
        yield fake, str(server.make_url("/")).rstrip("/")
    finally:
        await server.close()


@pytest_asyncio.fixture
async def client(github, config):
    _, api_url = github
    async with aiohttp.ClientSession() as session:
        yield GitHubClient(session, config, api_url=api_url)


class TestAppJwt:
    def test_claims(self, rsa_key, private_pem):
        token = build_app_jwt(4242, private_pem, now=1_700_000_000)
        claims = jwt.decode(
            token,
            rsa_key.public_key(),
            algorithms=["RS256"],
            options={"verify_exp": False, "verify_iat": False},
        )
        assert claims == {"iat": 1_699_999_940, "exp": 1_700_000_540, "iss": "4242"}


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_authenticate_returns_slug(self, client):
        assert await client.authenticate() == "http-monitor-bot"

    @pytest.mark.asyncio
    async def test_calls_before_authentication_fail(self, client):
        with pytest.raises(GitHubError) as exc:
            await client.list_open_issues("outage")
        assert exc.value.status == 401

    @pytest.mark.asyncio
    async def test_wrong_installation(self, github, config):
        _, api_url = github
        config.installation_id = 1
        async with aiohttp.ClientSession() as session:
            with pytest.raises(GitHubError) as exc:
                await GitHubClient(session, config, api_url=api_url).authenticate()
        assert exc.value.status == 404
        assert "Not Found" in str(exc.value)


class TestIssues:
    @pytest.mark.asyncio
    async def test_create_list_close(self, client, github):
        fake, _ = github
        await client.authenticate()

        created = await client.create_issue("Example API Down", "body", "outage")
        assert created.number == 1
        assert fake.issues[1]["labels"] == ["outage"]

        issues = await client.list_open_issues("outage")
        assert [i.number for i in issues] == [1]
        assert issues[0].body == "body"
        assert ("GET", "/repos/example/status/issues", {"state": "open", "labels": "outage"}) in fake.requests

        await client.close_issue(1)
        assert fake.issues[1]["state"] == "closed"
        assert await client.list_open_issues("outage") == []

    @pytest.mark.asyncio
    async def test_pull_requests_are_ignored(self, client, github):
        fake, _ = github
        fake.issues[1] = {
            "number": 1,
            "title": "PR",
            "body": None,
            "labels": ["outage"],
            "state": "open",
            "pull_request": {"url": "https://example.invalid"},
        }
        await client.authenticate()
        assert await client.list_open_issues("outage") == []

    @pytest.mark.asyncio
    async def test_other_labels_are_ignored(self, client):
        await client.authenticate()
        await client.create_issue("Unrelated", "body", "bug")
        assert await client.list_open_issues("outage") == []


class TestContents:
    @pytest.mark.asyncio
    async def test_create_get_update(self, client, github):
        fake, _ = github
        await client.authenticate()
        path = "content/issues/2026-10-18-example-api-outage-09-30-00.md"
        text = "---\ntitle: Example API Outage\n---\n" + "x" * 200

        sha = await client.create_file(path, text, "Report outage for Example API")
        assert fake.files[path] == (text, sha)

        fetched = await client.get_file(path)
        assert fetched.text == text
        assert fetched.sha == sha

        new_sha = await client.update_file(path, text + "\nresolved", "Report uptime for Example API", sha)
        assert new_sha != sha
        assert fake.files[path][0].endswith("resolved")

    @pytest.mark.asyncio
    async def test_update_with_stale_sha_conflicts(self, client, github):
        fake, _ = github
        await client.authenticate()
        sha = await client.create_file("content/issues/a.md", "one", "create")
        await client.update_file("content/issues/a.md", "two", "update", sha)

        with pytest.raises(GitHubError) as exc:
            await client.update_file("content/issues/a.md", "three", "update", sha)
        assert exc.value.status == 409
        assert fake.files["content/issues/a.md"][0] == "two"

    @pytest.mark.asyncio
    async def test_create_existing_file_fails(self, client):
        await client.authenticate()
        await client.create_file("content/issues/a.md", "one", "create")
        with pytest.raises(GitHubError):
            await client.create_file("content/issues/a.md", "again", "create")

    @pytest.mark.asyncio
    async def test_missing_file(self, client):
        await client.authenticate()
        with pytest.raises(GitHubError) as exc:
            await client.get_file("content/issues/missing.md")
        assert exc.value.status == 404

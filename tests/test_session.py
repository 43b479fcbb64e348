from unittest.mock import AsyncMock, MagicMock

import pytest

from lightmining.errors import (
    ErrorKind,
    Result,
    SigningError,
    TransportError,
)
from lightmining.http_client import RetryingRequester
from lightmining.proxy_manager import ProxyDescriptor, ProxyPool
from lightmining.session import (
    LOGIN_PATH,
    MINING_TIME_PATH,
    NONCE_PATH,
    START_MINING_PATH,
    USER_INFO_PATH,
    AuthSession,
    MinerStatus,
    Session,
)


def ok(value):
    return Result.success(value)


def failed(message="boom"):
    return Result.failure(TransportError(message))


@pytest.fixture
def requester():
    mock = MagicMock()
    mock.get = AsyncMock()
    mock.post = AsyncMock()
    return mock


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def auth(requester, sleep):
    return AuthSession(requester, "9M8HC", sleep=sleep)


class TestMinerStatus:
    def test_next_eligible_time_is_one_day_later(self):
        status = MinerStatus(last_mining_time=1_000)
        assert status.next_eligible_time == 1_000 + 86400

    def test_eligibility_is_strict(self):
        status = MinerStatus(last_mining_time=1_000)
        assert status.is_eligible(1_000 + 86400) is False
        assert status.is_eligible(1_000 + 86400 + 1) is True
        assert status.is_eligible(1_000 + 100) is False

    def test_never_mined_is_eligible(self):
        assert MinerStatus(last_mining_time=0).is_eligible(1_700_000_000)


class TestNonce:
    @pytest.mark.asyncio
    async def test_get_nonce_success(self, auth, requester):
        requester.post.return_value = ok({"code": 200, "data": {"nonce": "n1"}})

        result = await auth.get_nonce("0xA")

        assert result.ok
        assert result.value == "n1"
        requester.post.assert_awaited_once_with(NONCE_PATH, {"walletAddress": "0xA"})

    @pytest.mark.asyncio
    async def test_missing_nonce_is_application_error(self, auth, requester, sleep):
        requester.post.return_value = ok({"code": 200, "data": {}})

        result = await auth.get_nonce("0xA")

        assert result.kind is ErrorKind.APPLICATION
        assert requester.post.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_outer_retry_recovers(self, auth, requester, sleep):
        requester.post.side_effect = [
            failed(), failed(), ok({"data": {"nonce": "n2"}}),
        ]

        result = await auth.get_nonce("0xA")

        assert result.value == "n2"
        assert requester.post.await_count == 3
        assert sleep.await_count == 2
        sleep.assert_awaited_with(3.0)

    @pytest.mark.asyncio
    async def test_outer_retry_exhausted(self, auth, requester, sleep):
        requester.post.return_value = failed("down")

        result = await auth.get_nonce("0xA")

        assert not result.ok
        assert result.kind is ErrorKind.TRANSPORT
        assert requester.post.await_count == 3
        assert sleep.await_count == 2


class TestSign:
    def test_sign_delegates_to_signer(self, requester):
        signer = MagicMock(return_value="0xsig")
        auth = AuthSession(requester, "code", signer=signer)

        result = auth.sign("n1", "k1")

        assert result.value == "0xsig"
        signer.assert_called_once_with("n1", "k1")

    def test_signing_failure_not_retried(self, requester):
        signer = MagicMock(side_effect=SigningError("bad key"))
        auth = AuthSession(requester, "code", signer=signer)

        result = auth.sign("n1", "k1")

        assert result.kind is ErrorKind.SIGNING
        assert signer.call_count == 1


class TestLogin:
    @pytest.mark.asyncio
    async def test_login_sends_invitation_code(self, auth, requester):
        requester.post.return_value = ok({"data": {"token": "tok1"}})

        result = await auth.login("0xA", "n1", "0xsig")

        assert result.value == Session(token="tok1", wallet_address="0xA")
        requester.post.assert_awaited_once_with(LOGIN_PATH, {
            "address": "0xA",
            "invitationCode": "9M8HC",
            "message": "n1",
            "signature": "0xsig",
        })

    @pytest.mark.asyncio
    async def test_login_without_token_fails(self, auth, requester):
        requester.post.return_value = ok({"data": {"token": ""}})

        result = await auth.login("0xA", "n1", "0xsig")

        assert result.kind is ErrorKind.APPLICATION


class TestUserAndStatus:
    @pytest.mark.asyncio
    async def test_get_user_parses_fields(self, auth, requester):
        requester.get.return_value = ok({"data": {
            "userId": 42, "twName": "alice", "totalReward": "12.5",
        }})

        result = await auth.get_user("tok1")

        user = result.value
        assert user.user_id == 42
        assert user.tw_name == "alice"
        assert user.has_social_binding is True
        requester.get.assert_awaited_once_with(USER_INFO_PATH, "tok1")

    @pytest.mark.asyncio
    async def test_unbound_user(self, auth, requester):
        requester.get.return_value = ok({"data": {"userId": 1, "twName": None}})

        result = await auth.get_user("tok1")

        assert result.ok
        assert result.value.has_social_binding is False

    @pytest.mark.asyncio
    async def test_get_user_without_data(self, auth, requester):
        requester.get.return_value = ok({"code": 401})

        result = await auth.get_user("tok1")

        assert result.kind is ErrorKind.APPLICATION

    @pytest.mark.asyncio
    async def test_miner_status(self, auth, requester):
        requester.get.return_value = ok({"data": {"lastMiningTime": 1700000000}})

        result = await auth.get_miner_status("tok1")

        assert result.value.last_mining_time == 1700000000
        requester.get.assert_awaited_once_with(MINING_TIME_PATH, "tok1")

    @pytest.mark.asyncio
    async def test_miner_status_defaults_to_zero(self, auth, requester):
        requester.get.return_value = ok({"data": {"lastMiningTime": None}})

        result = await auth.get_miner_status("tok1")

        assert result.value.last_mining_time == 0

    @pytest.mark.asyncio
    async def test_empty_data_object_means_never_mined(self, auth, requester):
        requester.get.return_value = ok({"code": 200, "data": {}})

        result = await auth.get_miner_status("tok1")

        assert result.ok
        assert result.value.last_mining_time == 0
        assert result.value.is_eligible(1_700_000_000)

    @pytest.mark.asyncio
    async def test_miner_status_without_data_fails(self, auth, requester):
        requester.get.return_value = ok({"code": 200, "data": None})

        result = await auth.get_miner_status("tok1")

        assert result.kind is ErrorKind.APPLICATION

    @pytest.mark.asyncio
    async def test_miner_status_uses_configured_cooldown(self, requester):
        auth = AuthSession(requester, "code", cooldown=3600, sleep=AsyncMock())
        requester.get.return_value = ok({"data": {"lastMiningTime": 100}})

        result = await auth.get_miner_status("tok1")

        assert result.value.next_eligible_time == 3700


class TestStartMine:
    @pytest.mark.asyncio
    async def test_start_mine_posts_empty_body_with_bearer(self, auth, requester):
        requester.post.return_value = ok({"code": 200, "data": True})

        result = await auth.start_mine("tok1")

        assert result.ok
        requester.post.assert_awaited_once_with(START_MINING_PATH, {}, token="tok1")

    @pytest.mark.asyncio
    async def test_empty_envelope_counts_as_started(self, auth, requester):
        requester.post.return_value = ok({})

        result = await auth.start_mine("tok1")

        assert result.ok
        assert result.value == {}

    @pytest.mark.asyncio
    async def test_null_response_is_failure(self, auth, requester):
        requester.post.return_value = ok(None)

        result = await auth.start_mine("tok1")

        assert result.kind is ErrorKind.APPLICATION


class TestNestedRetryLayers:
    @pytest.mark.asyncio
    async def test_fully_exhausted_call_makes_nine_http_attempts(self):
        """3 outer attempts x 3 proxy-rotating attempts per request."""
        attempts = []

        def factory(proxy, base_url, timeout=None):
            client = MagicMock()

            async def request(method, path, headers=None, json_body=None):
                attempts.append(proxy)
                raise TransportError("proxy down")

            client.request = request
            return client

        pool = ProxyPool([
            ProxyDescriptor("http", "1.1.1.1", 80),
            ProxyDescriptor("socks5", "2.2.2.2", 1080),
        ])
        sleep = AsyncMock()
        requester = RetryingRequester(
            pool, "https://api.test/", client_factory=factory, sleep=sleep,
        )
        auth = AuthSession(requester, "code", sleep=sleep)

        result = await auth.get_user("tok1")

        assert result.kind is ErrorKind.TRANSPORT
        assert len(attempts) == 9
        # 2 inner sleeps per request x 3 + 2 outer sleeps
        assert sleep.await_count == 8
        assert pool.cursor == 9 % 2

"""Tests for TelemetryApiClient."""

from datetime import datetime, timezone

import pytest

from cyberguard_telemetry.services.api_client import AuthSession, UserDescriptor
from cyberguard_telemetry.services.records import (
    NetworkConnectionRecord,
    NetworkInterfaceMetrics,
    ProcessRecord,
    ServiceRecord,
)
from cyberguard_telemetry.services.request_engine import TimeoutTier
from cyberguard_telemetry.utils.errors import (
    AuthenticationError,
    ErrorKind,
    HttpStatusError,
    MalformedPayloadError,
)


LOGIN_RESPONSE = {
    "access_token": "abc123",
    "token_type": "bearer",
    "user": {"id": 1, "username": "admin", "is_active": True, "is_superuser": True},
}


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_login_stores_credential(self, api, credentials, mock_client, make_response):
        mock_client.request.return_value = make_response(200, LOGIN_RESPONSE)

        session = await api.login("admin", "secret")

        assert isinstance(session, AuthSession)
        assert session.access_token == "abc123"
        assert session.user == UserDescriptor(id=1, username="admin", is_active=True, is_superuser=True)
        assert credentials.get().token == "abc123"
        assert api.is_authenticated() is True

        args, kwargs = mock_client.request.call_args
        assert args == ("POST", "/api/v1/auth/auth/login")
        assert kwargs["data"] == {"username": "admin", "password": "secret", "grant_type": "password"}

    @pytest.mark.asyncio
    async def test_header_follows_login_and_logout(self, api, mock_client, make_response, live_metrics):
        mock_client.request.return_value = make_response(200, LOGIN_RESPONSE)
        await api.login("admin", "secret")

        mock_client.request.return_value = make_response(200, live_metrics)
        await api.fetch_current_metrics()
        assert mock_client.request.call_args.kwargs["headers"]["Authorization"] == "Bearer abc123"

        api.logout()
        await api.fetch_current_metrics()
        assert "Authorization" not in mock_client.request.call_args.kwargs["headers"]
        assert api.is_authenticated() is False

    @pytest.mark.asyncio
    async def test_login_rejected(self, api, credentials, mock_client, make_response):
        mock_client.request.return_value = make_response(401, {"detail": "Incorrect username or password"})

        with pytest.raises(AuthenticationError) as exc_info:
            await api.login("admin", "wrong")

        assert "Incorrect username or password" in str(exc_info.value)
        assert credentials.get() is None

    @pytest.mark.asyncio
    async def test_login_without_token(self, api, credentials, mock_client, make_response):
        mock_client.request.return_value = make_response(200, {"token_type": "bearer"})

        with pytest.raises(AuthenticationError):
            await api.login("admin", "secret")

        assert credentials.get() is None

    @pytest.mark.asyncio
    async def test_current_user(self, api, mock_client, make_response):
        mock_client.request.return_value = make_response(200, {"id": 7, "username": "ops"})

        user = await api.current_user()

        assert user.id == 7
        assert user.username == "ops"
        assert mock_client.request.call_args.args == ("GET", "/api/v1/auth/auth/me")

    @pytest.mark.asyncio
    async def test_unauthorized_clears_credential(self, api, credentials, mock_client, make_response):
        credentials.set("expired")
        mock_client.request.return_value = make_response(401, {"detail": "Could not validate credentials"})

        with pytest.raises(HttpStatusError) as exc_info:
            await api.fetch_current_metrics()

        assert exc_info.value.status_code == 401
        assert credentials.get() is None


class TestMetrics:
    @pytest.mark.asyncio
    async def test_fetch_current_metrics(self, api, mock_client, make_response, live_metrics):
        mock_client.request.return_value = make_response(200, live_metrics)

        payload = await api.fetch_current_metrics()

        assert payload == live_metrics
        assert mock_client.request.call_args.args == ("GET", "/api/v1/metrics/current/")
        assert mock_client.request.call_args.kwargs["timeout"] == api.engine.deadline_for(TimeoutTier.BULK_METRICS)

    @pytest.mark.asyncio
    async def test_fetch_metrics_summary(self, api, mock_client, make_response):
        mock_client.request.return_value = make_response(200, {"current_cpu_percent": 10})

        payload = await api.fetch_metrics_summary()

        assert payload == {"current_cpu_percent": 10}
        assert mock_client.request.call_args.args == ("GET", "/api/v1/metrics/summary/")

    @pytest.mark.asyncio
    async def test_recovered_body_is_returned(self, api, mock_client, make_response):
        mock_client.request.return_value = make_response(
            200, text='{"cpu_percent": 12.5}<!-- served by proxy -->'
        )

        assert await api.fetch_current_metrics() == {"cpu_percent": 12.5}

    @pytest.mark.asyncio
    async def test_error_body_on_success_status_raises(self, api, mock_client, make_response):
        mock_client.request.return_value = make_response(
            200, text='{"code":500,"message":"upstream database unavailable'
        )

        with pytest.raises(HttpStatusError) as exc_info:
            await api.fetch_current_metrics()

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "upstream database unavailable"
        assert exc_info.value.is_database_fault is True
        assert exc_info.value.payload["reconstructed"] is True

    @pytest.mark.asyncio
    async def test_error_body_without_error_code_on_success_status(self, api, mock_client, make_response):
        mock_client.request.return_value = make_response(200, text='{"message": "partial resu')

        with pytest.raises(HttpStatusError) as exc_info:
            await api.fetch_current_metrics()

        assert exc_info.value.status_code == 502
        assert exc_info.value.message == "partial resu"

    @pytest.mark.asyncio
    async def test_unrecoverable_body_raises(self, api, mock_client, make_response):
        mock_client.request.return_value = make_response(200, text="<html>maintenance</html>")

        with pytest.raises(MalformedPayloadError) as exc_info:
            await api.fetch_current_metrics()

        assert exc_info.value.kind is ErrorKind.MALFORMED_PAYLOAD
        assert exc_info.value.diagnostic.sample == "<html>maintenance</html>"

    @pytest.mark.asyncio
    async def test_database_fault(self, api, mock_client, make_response):
        mock_client.request.return_value = make_response(500, {"detail": "Database connection failed"})

        with pytest.raises(HttpStatusError) as exc_info:
            await api.fetch_current_metrics()

        assert exc_info.value.is_backend_fault is True
        assert exc_info.value.is_database_fault is True
        assert exc_info.value.message == "Database connection failed"

    @pytest.mark.asyncio
    async def test_truncated_server_error_is_reconstructed(self, api, mock_client, make_response):
        mock_client.request.return_value = make_response(500, text='{"code":500,"message":"Internal server err')

        with pytest.raises(HttpStatusError) as exc_info:
            await api.fetch_current_metrics()

        assert exc_info.value.message == "Internal server err"
        assert exc_info.value.payload["reconstructed"] is True
        assert exc_info.value.is_database_fault is False

    @pytest.mark.asyncio
    async def test_undecodable_error_body(self, api, mock_client, make_response):
        mock_client.request.return_value = make_response(502, text="Bad Gateway", content_type="text/html")

        with pytest.raises(HttpStatusError) as exc_info:
            await api.fetch_current_metrics()

        assert exc_info.value.status_code == 502
        assert exc_info.value.payload is None
        assert exc_info.value.message == "HTTP error! status: 502"


class TestHistoryAndCollection:
    @pytest.mark.asyncio
    async def test_history_sends_time_window(self, api, mock_client, make_response, live_metrics):
        mock_client.request.return_value = make_response(200, {"metrics": [live_metrics, "junk"]})

        records = await api.fetch_metrics_history(
            start_time=datetime(2024, 5, 1, tzinfo=timezone.utc),
            end_time="2024-05-02T00:00:00Z",
        )

        assert records == [live_metrics]
        args, kwargs = mock_client.request.call_args
        assert args == ("GET", "/api/v1/metrics/")
        assert kwargs["params"] == {
            "start_time": "2024-05-01T00:00:00+00:00",
            "end_time": "2024-05-02T00:00:00Z",
        }
        assert kwargs["timeout"] == api.engine.deadline_for(TimeoutTier.BULK_METRICS)

    @pytest.mark.asyncio
    async def test_history_without_window(self, api, mock_client, make_response):
        mock_client.request.return_value = make_response(200, {"metrics": []})

        assert await api.fetch_metrics_history() == []
        assert mock_client.request.call_args.kwargs["params"] is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method_name,path", [
        ("collect_metrics", "/api/v1/metrics/collect/"),
        ("collect_all_metrics", "/api/v1/system/collect-all"),
    ])
    async def test_collection_posts_on_bulk_tier(self, api, mock_client, make_response, method_name, path):
        mock_client.request.return_value = make_response(200, {"success": True})

        result = await getattr(api, method_name)()

        assert result == {"success": True}
        args, kwargs = mock_client.request.call_args
        assert args == ("POST", path)
        assert kwargs["timeout"] == api.engine.deadline_for(TimeoutTier.BULK_METRICS)


class TestInventory:
    @pytest.mark.asyncio
    async def test_network_interfaces(self, api, mock_client, make_response):
        mock_client.request.return_value = make_response(200, {"metrics": [{
            "id": 1,
            "timestamp": "2024-05-01T12:00:00Z",
            "interface_name": "eth0",
            "bytes_sent": 1024,
            "bytes_recv": 2048,
            "packets_sent": 10,
            "errin": 1,
            "config": {"interface_name": "eth0", "ip_address": "10.0.0.5", "is_up": True, "speed": 1000},
        }]})

        interfaces = await api.fetch_network_interfaces(start_time="2024-05-01T00:00:00Z")

        assert interfaces == [NetworkInterfaceMetrics(
            interface_name="eth0",
            bytes_sent=1024.0,
            bytes_recv=2048.0,
            packets_sent=10,
            errin=1,
            is_up=True,
            ip_address="10.0.0.5",
            speed=1000.0,
            timestamp=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
        )]
        args, kwargs = mock_client.request.call_args
        assert args == ("GET", "/api/v1/metrics/network-interfaces/")
        assert kwargs["params"] == {"start_time": "2024-05-01T00:00:00Z"}

    @pytest.mark.asyncio
    async def test_current_network_metrics(self, api, mock_client, make_response):
        mock_client.request.return_value = make_response(200, {"metrics": [{"interface_name": "lo"}]})

        interfaces = await api.fetch_current_network_metrics()

        assert [i.interface_name for i in interfaces] == ["lo"]
        assert interfaces[0].is_up is None
        assert mock_client.request.call_args.args == ("GET", "/api/v1/metrics/network-interfaces/current/")

    @pytest.mark.asyncio
    async def test_processes_paged(self, api, mock_client, make_response):
        mock_client.request.return_value = make_response(200, [
            {"pid": 42, "name": "nginx", "status": "running", "cpu_percent": 3.5,
             "memory_percent": "1.25", "threads_count": 4, "create_time": "2024-05-01T08:00:00"},
        ])

        processes = await api.fetch_processes(limit=10)

        assert processes == [ProcessRecord(
            pid=42, name="nginx", status="running", cpu_percent=3.5,
            memory_percent=1.25, threads_count=4, create_time="2024-05-01T08:00:00",
        )]
        args, kwargs = mock_client.request.call_args
        assert args == ("GET", "/api/v1/system/processes")
        assert kwargs["params"] == {"limit": 10}
        assert kwargs["timeout"] == api.engine.deadline_for(TimeoutTier.DEFAULT)

    @pytest.mark.asyncio
    async def test_network_connections(self, api, mock_client, make_response):
        mock_client.request.return_value = make_response(200, [{
            "protocol": "tcp", "local_address": "0.0.0.0", "local_port": 443,
            "remote_address": "203.0.113.9", "remote_port": 51514, "status": "ESTABLISHED", "pid": 42,
        }])

        connections = await api.fetch_network_connections(skip=20, limit=20)

        assert connections == [NetworkConnectionRecord(
            protocol="tcp", local_address="0.0.0.0", local_port=443,
            remote_address="203.0.113.9", remote_port=51514, status="ESTABLISHED", pid=42,
        )]
        args, kwargs = mock_client.request.call_args
        assert args == ("GET", "/api/v1/system/network")
        assert kwargs["params"] == {"skip": 20, "limit": 20}

    @pytest.mark.asyncio
    async def test_services(self, api, mock_client, make_response):
        mock_client.request.return_value = make_response(200, [
            {"name": "nginx", "status": "active"},
            {"name": "redis", "status": "inactive", "running": False},
        ])

        services = await api.fetch_services()

        assert services == [
            ServiceRecord(name="nginx", status="active", running=True),
            ServiceRecord(name="redis", status="inactive", running=False),
        ]
        assert mock_client.request.call_args.args == ("GET", "/api/v1/system/services")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method_name,path,record_type", [
        ("collect_process_metrics", "/api/v1/system/processes/collect", ProcessRecord),
        ("collect_network_connections", "/api/v1/system/network/collect", NetworkConnectionRecord),
        ("collect_service_status", "/api/v1/system/services/collect", ServiceRecord),
    ])
    async def test_collect_counterparts(self, api, mock_client, make_response, method_name, path, record_type):
        mock_client.request.return_value = make_response(200, [{"name": "x", "pid": 1, "protocol": "udp"}])

        records = await getattr(api, method_name)()

        assert len(records) == 1
        assert isinstance(records[0], record_type)
        args, kwargs = mock_client.request.call_args
        assert args == ("POST", path)
        assert kwargs["timeout"] == api.engine.deadline_for(TimeoutTier.BULK_METRICS)

    @pytest.mark.asyncio
    async def test_error_envelope_is_not_a_list(self, api, mock_client, make_response):
        mock_client.request.return_value = make_response(200, {"detail": "no data"})

        assert await api.fetch_services() == []


class TestHealthAndPreflight:
    @pytest.mark.asyncio
    async def test_health_check_uses_health_tier(self, api, mock_client, make_response):
        mock_client.request.return_value = make_response(200, {"status": "healthy"})

        response = await api.health_check()

        assert response.tier is TimeoutTier.HEALTH
        assert mock_client.request.call_args.args == ("GET", "/health")

    @pytest.mark.asyncio
    async def test_preflight_sends_cors_headers(self, api, mock_client, make_response):
        mock_client.request.return_value = make_response(
            200, text="", headers={"access-control-allow-origin": "*"}
        )

        response = await api.preflight("/api/v1/auth/auth/login", origin="http://dashboard.test")

        args, kwargs = mock_client.request.call_args
        assert args == ("OPTIONS", "/api/v1/auth/auth/login")
        assert kwargs["headers"]["Origin"] == "http://dashboard.test"
        assert kwargs["headers"]["Access-Control-Request-Method"] == "POST"
        assert response.headers["access-control-allow-origin"] == "*"

"""Unit tests for the Workers script resource plugin."""

from unittest.mock import patch

import aiohttp
import pytest
import pytest_asyncio

from errors import ImportFormatError, SerializationError
from plugins.base import Operation, ResourceContext
from plugins.resources.workers_script import WorkersScriptPlugin
from plugins.resources.workers_script.model import WorkersScriptModel, escape_quotes

SCRIPT_PATH = "accounts/acct123/workers/scripts/my-worker"


class BufferWriter:
    """Collects the bytes a multipart body writes."""

    def __init__(self):
        self.buffer = bytearray()

    async def write(self, data):
        self.buffer.extend(data)


async def encode(writer: aiohttp.MultipartWriter) -> bytes:
    sink = BufferWriter()
    await writer.write(sink)
    return bytes(sink.buffer)


# ==================== Model Tests ====================


class TestEscapeQuotes:
    """Tests for Content-Disposition parameter escaping."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("index.js", "index.js"),
            ('say "hi".js', 'say \\"hi\\".js'),
            ("dir\\file.js", "dir\\\\file.js"),
            ('\\"', '\\\\\\"'),
        ],
    )
    def test_escape(self, value, expected):
        assert escape_quotes(value) == expected


class TestWorkersScriptMetadata:
    """Tests for the metadata part of an upload."""

    def test_minimal(self, workers_script_attributes):
        data = WorkersScriptModel.model_validate(workers_script_attributes)
        assert data.metadata() == {
            "main_module": "index.js",
            "compatibility_date": "2024-09-23",
        }

    def test_placement_and_logpush(self, workers_script_attributes):
        data = WorkersScriptModel.model_validate(
            dict(workers_script_attributes, placement_mode="smart", logpush=True)
        )
        metadata = data.metadata()
        assert metadata["placement"] == {"mode": "smart"}
        assert metadata["logpush"] is True
        assert "placement_mode" not in metadata

    def test_message_not_sent(self, workers_script_attributes):
        data = WorkersScriptModel.model_validate(
            dict(workers_script_attributes, message="deploy 42")
        )
        assert "message" not in data.metadata()

    def test_migration_classes_use_from(self, workers_script_attributes):
        migrations = {
            "new_tag": "v2",
            "renamed_classes": [{"from": "Counter", "to": "Tally"}],
            "transferred_classes": [
                {"from": "Room", "from_script": "old-worker", "to": "Room"}
            ],
        }
        data = WorkersScriptModel.model_validate(
            dict(workers_script_attributes, migrations=migrations)
        )
        sent = data.metadata()["migrations"]
        assert sent["renamed_classes"] == [{"from": "Counter", "to": "Tally"}]
        assert sent["transferred_classes"][0]["from"] == "Room"
        assert data.to_state()["migrations"]["renamed_classes"][0]["from"] == "Counter"

    def test_bindings(self, workers_script_attributes):
        bindings = [
            {"name": "BUCKET", "type": "r2_bucket", "bucket_name": "uploads"},
            {"name": "JOBS", "type": "queue", "queue_name": "jobs"},
        ]
        data = WorkersScriptModel.model_validate(
            dict(workers_script_attributes, bindings=bindings)
        )
        assert data.metadata()["bindings"] == bindings


class TestWorkersScriptModel:
    """Tests for attribute normalization."""

    def test_usage_model_lowercased(self, workers_script_attributes):
        data = WorkersScriptModel.model_validate(
            dict(workers_script_attributes, usage_model="Bundled")
        )
        assert data.usage_model == "bundled"

    def test_usage_model_rejected(self, workers_script_attributes):
        with pytest.raises(ValueError, match="'bundled' or 'unbound'"):
            WorkersScriptModel.model_validate(
                dict(workers_script_attributes, usage_model="standard")
            )

    def test_sets_are_deduplicated(self, workers_script_attributes):
        data = WorkersScriptModel.model_validate(
            dict(
                workers_script_attributes,
                compatibility_flags=["nodejs_compat", "nodejs_compat"],
                tail_consumers=[{"service": "tail"}, {"service": "tail"}],
            )
        )
        assert data.compatibility_flags == ["nodejs_compat"]
        assert len(data.tail_consumers) == 1

    def test_settings_path_prefers_id(self, workers_script_attributes):
        data = WorkersScriptModel.model_validate(dict(workers_script_attributes, id="abc"))
        assert data.settings_path == "accounts/acct123/workers/scripts/abc/settings"

    def test_with_api_result(self, workers_script_attributes):
        data = WorkersScriptModel.model_validate(workers_script_attributes)
        data = data.with_api_result(
            {
                "id": "my-worker",
                "etag": "e1",
                "usage_model": "UNBOUND",
                "startup_time_ms": 12,
                "tail_consumers": [{"service": "tail"}],
            }
        )
        assert data.etag == "e1"
        assert data.usage_model == "unbound"
        assert data.startup_time_ms == 12
        assert data.tail_consumers[0].service == "tail"


@pytest.mark.asyncio
class TestWorkersScriptMultipart:
    """Tests for the multipart upload body."""

    async def test_parts(self, workers_script_attributes):
        workers_script_attributes["parts"]["util.js"] = {"part": "export const x = 1;"}
        data = WorkersScriptModel.model_validate(workers_script_attributes)

        body = await encode(data.to_multipart())

        assert b'form-data; name="metadata"' in body
        assert b"application/json" in body
        assert b'form-data; name="index.js"; filename="index.js"' in body
        assert b"text/javascript+module" in body
        assert b'form-data; name="util.js"; filename="util.js"' in body
        assert b"export const x = 1;" in body
        assert body.index(b'name="index.js"') < body.index(b'name="util.js"')

    async def test_part_names_escaped(self, workers_script_attributes):
        workers_script_attributes["parts"] = {'we"ird.js': {"part": "x", "module": True}}
        data = WorkersScriptModel.model_validate(workers_script_attributes)

        body = await encode(data.to_multipart())

        assert b'name="we\\"ird.js"; filename="we\\"ird.js"' in body


class TestWorkersScriptSerialization:
    """Tests for encoding failures."""

    def test_serialization_error(self, workers_script_attributes):
        data = WorkersScriptModel.model_validate(workers_script_attributes)
        with patch(
            "plugins.resources.workers_script.model.json.dumps",
            side_effect=TypeError("not serializable"),
        ):
            with pytest.raises(SerializationError) as exc_info:
                data.to_multipart()
        assert exc_info.value.summary == "failed to serialize multipart http request"


class TestWorkersScriptPlugin:
    """Tests for plugin metadata and schema."""

    def test_metadata(self):
        plugin = WorkersScriptPlugin()
        assert plugin.type_name == "cloudflare-extended_workers_script"
        assert plugin.supports_import is True

    def test_schema_requires_parts(self, workers_script_attributes):
        workers_script_attributes["parts"] = {}
        is_valid, _ = WorkersScriptPlugin().validate_attributes(workers_script_attributes)
        assert is_valid is False

    def test_schema_usage_model_case_insensitive(self, workers_script_attributes):
        plugin = WorkersScriptPlugin()
        assert plugin.validate_attributes(
            dict(workers_script_attributes, usage_model="UNBOUND")
        ) == (True, None)
        is_valid, _ = plugin.validate_attributes(
            dict(workers_script_attributes, usage_model="standard")
        )
        assert is_valid is False

    def test_script_rename_requires_replace(self, workers_script_attributes):
        desired = dict(workers_script_attributes, script_name="other")
        assert WorkersScriptPlugin().plan_replacement(desired, workers_script_attributes) == [
            "script_name"
        ]


# ==================== Lifecycle Tests ====================


@pytest.mark.asyncio
class TestWorkersScriptLifecycle:
    """Async tests for create, read, update, delete and import."""

    @pytest_asyncio.fixture
    async def plugin(self, mock_client):
        plugin = WorkersScriptPlugin()
        await plugin.initialize(mock_client)
        return plugin

    async def test_create_uploads_multipart(self, plugin, mock_client, workers_script_attributes):
        mock_client.put.return_value = {"id": "my-worker", "etag": "e1"}
        ctx = ResourceContext(
            type_name=plugin.type_name,
            operation=Operation.CREATE,
            desired=workers_script_attributes,
        )

        state = await plugin.create(ctx)

        args, kwargs = mock_client.put.call_args
        assert args == (SCRIPT_PATH,)
        assert isinstance(kwargs["data"], aiohttp.MultipartWriter)
        assert state["id"] == "my-worker"
        assert state["etag"] == "e1"

    async def test_update_reuploads(self, plugin, mock_client, workers_script_attributes):
        mock_client.put.return_value = {"id": "my-worker", "etag": "e2"}
        desired = dict(workers_script_attributes, compatibility_flags=["nodejs_compat"])
        ctx = ResourceContext(
            type_name=plugin.type_name,
            operation=Operation.UPDATE,
            desired=desired,
            prior=workers_script_attributes,
        )

        state = await plugin.update(ctx)

        mock_client.put.assert_awaited_once()
        assert state["compatibility_flags"] == ["nodejs_compat"]
        assert state["etag"] == "e2"

    async def test_read_merges_settings(self, plugin, mock_client, workers_script_attributes):
        mock_client.get.return_value = {
            "logpush": True,
            "placement": {"mode": "smart"},
            "usage_model": "Unbound",
            "tail_consumers": [],
        }
        ctx = ResourceContext(
            type_name=plugin.type_name,
            operation=Operation.READ,
            prior=dict(workers_script_attributes, id="my-worker"),
        )

        state = await plugin.read(ctx)

        mock_client.get.assert_awaited_once_with(f"{SCRIPT_PATH}/settings")
        assert state["logpush"] is True
        assert state["placement_mode"] == "smart"
        assert state["usage_model"] == "unbound"
        assert state["tail_consumers"] == []
        assert state["parts"] == workers_script_attributes["parts"]

    async def test_delete(self, plugin, mock_client, workers_script_attributes):
        ctx = ResourceContext(
            type_name=plugin.type_name,
            operation=Operation.DELETE,
            prior=workers_script_attributes,
        )

        await plugin.delete(ctx)

        mock_client.delete.assert_awaited_once_with(SCRIPT_PATH)

    async def test_import(self, plugin, mock_client):
        mock_client.get.return_value = {"logpush": False}
        ctx = ResourceContext(
            type_name=plugin.type_name,
            operation=Operation.IMPORT,
            import_id="acct123/my-worker",
        )

        state = await plugin.import_state(ctx)

        mock_client.get.assert_awaited_once_with(f"{SCRIPT_PATH}/settings")
        assert state["id"] == "my-worker"
        assert state["account_id"] == "acct123"
        assert state["script_name"] == "my-worker"
        assert state["logpush"] is False

    async def test_import_bad_id(self, plugin, mock_client):
        ctx = ResourceContext(
            type_name=plugin.type_name, operation=Operation.IMPORT, import_id="my-worker"
        )

        with pytest.raises(ImportFormatError):
            await plugin.import_state(ctx)

        mock_client.get.assert_not_called()

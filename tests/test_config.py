import pytest

from config import Config, ConfigurationLoadError, create_ssl_context


@pytest.mark.asyncio
async def test_missing_file_uses_defaults(tmp_path):
    config = Config(tmp_path / "config.toml", environ={})

    await config.initialize()

    assert config.config == {
        "server": {
            "host": "",
            "port": 3000,
            "index": "index.html",
            "max_message_size": 1024 * 1024,
            "ping_interval": 20.0,
        },
        "sessions": {"grace_period": 5.0},
    }


@pytest.mark.asyncio
async def test_values_from_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(
        "[server]\n"
        "host = \"127.0.0.1\"\n"
        "port = 8443\n"
        "\n"
        "[server.tls]\n"
        "cert_file = \"cert.pem\"\n"
        "key_file = \"key.pem\"\n"
        "\n"
        "[sessions]\n"
        "grace_period = 2\n"
    )
    config = Config(path, environ={})

    await config.initialize()

    assert config.config["server"]["host"] == "127.0.0.1"
    assert config.config["server"]["port"] == 8443
    assert config.config["server"]["index"] == "index.html"
    assert config.config["server"]["tls"] == {"cert_file": "cert.pem", "key_file": "key.pem"}
    assert config.config["sessions"]["grace_period"] == 2.0


@pytest.mark.asyncio
async def test_port_from_environment(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[server]\nport = 8000\n")
    config = Config(path, environ={"PORT": "4000"})

    await config.initialize()

    assert config.config["server"]["port"] == 4000


@pytest.mark.asyncio
async def test_invalid_port_from_environment(tmp_path):
    config = Config(tmp_path / "config.toml", environ={"PORT": "http"})

    with pytest.raises(ConfigurationLoadError):
        await config.initialize()


@pytest.mark.asyncio
async def test_invalid_toml(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("[server\nport = ")

    with pytest.raises(ConfigurationLoadError):
        await Config(path, environ={}).initialize()


@pytest.mark.asyncio
@pytest.mark.parametrize("contents", [
    "[server]\nport = 70000\n",
    "[server]\nport = \"3000\"\n",
    "[server]\nunknown = 1\n",
    "[sessions]\ngrace_period = -1\n",
    "[server.tls]\ncert_file = \"cert.pem\"\n",
])
async def test_schema_violations(tmp_path, contents):
    path = tmp_path / "config.toml"
    path.write_text(contents)

    with pytest.raises(ConfigurationLoadError):
        await Config(path, environ={}).initialize()


def test_no_tls_section():
    assert create_ssl_context({"server": {}}) is None


def test_missing_certificate(tmp_path):
    config = {"server": {"tls": {"cert_file": str(tmp_path / "cert.pem"), "key_file": str(tmp_path / "key.pem")}}}

    with pytest.raises(ConfigurationLoadError):
        create_ssl_context(config)
